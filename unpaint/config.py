"""Runtime configuration for the inpainting core.

Defaults point at the MI-GAN "pipeline v2" export, which takes a uint8
RGB image and a uint8 mask as two separate inputs at any resolution.
Fields can be overridden from ``UNPAINT_*`` environment variables or the
command line.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

MODEL_URLS = [
    "https://huggingface.co/andraniksargsyan/migan/resolve/main/migan_pipeline_v2.onnx",
    "https://huggingface.co/lxfater/inpaint-web/resolve/main/migan.onnx",
]
MODEL_KEY = "migan-pipeline-v2"
DEFAULT_CACHE_DIR = Path.home() / ".unpaint" / "models"

# Declared graph interface: role -> tensor name
INPUT_NAMES = {"image": "image", "mask": "mask"}
OUTPUT_NAME = "result"


@dataclass
class InpaintConfig:
    """Settings shared by the cache, downloader, session and pipeline."""

    model_urls: List[str] = field(default_factory=lambda: list(MODEL_URLS))
    model_key: str = MODEL_KEY
    cache_dir: Path = DEFAULT_CACHE_DIR
    input_names: Dict[str, str] = field(default_factory=lambda: dict(INPUT_NAMES))
    output_name: str = OUTPUT_NAME
    providers: List[str] = field(default_factory=lambda: ["CPUExecutionProvider"])
    chunk_size: int = 64 * 1024
    timeout: float = 60.0
    fixed_size: Optional[int] = None

    def __post_init__(self) -> None:
        self.cache_dir = Path(self.cache_dir).expanduser()
        if set(self.input_names) != {"image", "mask"}:
            raise ValueError("input_names must map exactly the 'image' and 'mask' roles")
        if self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if self.timeout <= 0:
            raise ValueError("timeout must be positive")
        if self.fixed_size is not None and self.fixed_size < 1:
            raise ValueError("fixed_size must be at least 1")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "InpaintConfig":
        """Build a config from ``UNPAINT_*`` variables plus explicit overrides."""
        env = os.environ if environ is None else environ
        values = {}
        if env.get("UNPAINT_CACHE_DIR"):
            values["cache_dir"] = Path(env["UNPAINT_CACHE_DIR"])
        if env.get("UNPAINT_MODEL_URLS"):
            values["model_urls"] = [u.strip() for u in env["UNPAINT_MODEL_URLS"].split(",") if u.strip()]
        if env.get("UNPAINT_MODEL_KEY"):
            values["model_key"] = env["UNPAINT_MODEL_KEY"]
        if env.get("UNPAINT_FIXED_SIZE"):
            values["fixed_size"] = int(env["UNPAINT_FIXED_SIZE"])
        if env.get("UNPAINT_TIMEOUT"):
            values["timeout"] = float(env["UNPAINT_TIMEOUT"])
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
