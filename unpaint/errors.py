"""Error types raised by the inpainting core.

Every error carries a human-readable ``stage`` label so callers can tell
the user where an operation stopped. Only two of them are recovered from
inside the package: ``StorageError`` (the model cache degrades to
network-only operation) and ``NetworkError`` (the downloader moves on to
the next mirror). Everything else reaches the caller.
"""

from typing import List, Optional, Tuple


class UnpaintError(RuntimeError):
    """Base class for all unpaint failures."""

    default_stage = "inpainting"

    def __init__(self, message: str, stage: Optional[str] = None) -> None:
        super().__init__(message)
        self.stage = stage or self.default_stage

    def __str__(self) -> str:
        return f"{self.stage}: {super().__str__()}"


class StorageError(UnpaintError):
    """Reading or writing the persistent model cache failed."""

    default_stage = "model cache"


class NetworkError(UnpaintError):
    """A single mirror could not deliver the model."""

    default_stage = "downloading model"

    def __init__(self, message: str, url: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class DownloadExhaustedError(UnpaintError):
    """Every configured mirror failed."""

    default_stage = "downloading model"

    def __init__(self, failures: List[Tuple[str, NetworkError]]) -> None:
        urls = ", ".join(url for url, _ in failures) or "no mirrors configured"
        super().__init__(f"failed to download model from all mirrors ({urls})")
        self.failures = failures


class RuntimeInitError(UnpaintError):
    """The model bytes could not be turned into an inference session."""

    default_stage = "initializing model"


class ShapeMismatchError(UnpaintError, ValueError):
    """Image and mask dimensions differ."""

    default_stage = "preparing image"


class InferenceError(UnpaintError):
    """The forward pass failed."""

    default_stage = "running model"
