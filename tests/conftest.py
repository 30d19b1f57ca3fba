"""Common test fixtures."""

from pathlib import Path
from types import SimpleNamespace
from typing import Callable, Dict, List, Optional, Sequence, Union

import httpx
import numpy as np
import pytest

from unpaint.config import InpaintConfig
from unpaint.pipeline import InpaintContext
from unpaint.utils import PixelBuffer

MODEL_BYTES = b"fake-onnx-model:" + bytes(range(256)) * 4
MIRROR_A = "https://mirror-a.example/migan.onnx"
MIRROR_B = "https://mirror-b.example/migan.onnx"

# Value the fake model writes into holes
FILL_VALUE = 128

Route = Union[httpx.Response, Callable[[httpx.Request], httpx.Response], Exception]


class FakeRuntime:
    """Stands in for an onnxruntime session.

    ``run`` copies the image input and paints every hole (mask == 0)
    with ``FILL_VALUE``, returning a (1, 3, H, W) uint8 tensor.
    """

    def __init__(self, inputs: Sequence[str] = ("image", "mask"), outputs: Sequence[str] = ("result",)):
        self._inputs = [SimpleNamespace(name=n) for n in inputs]
        self._outputs = [SimpleNamespace(name=n) for n in outputs]
        self.run_calls = 0
        self.fail_with: Optional[Exception] = None

    def get_inputs(self):
        return self._inputs

    def get_outputs(self):
        return self._outputs

    def run(self, output_names, feeds):
        self.run_calls += 1
        if self.fail_with is not None:
            raise self.fail_with
        image = feeds["image"].copy()
        holes = feeds["mask"][:, 0] == 0
        for c in range(3):
            channel = image[:, c]
            channel[holes] = FILL_VALUE
        return [image]


class FakeSessionFactory:
    """Counts runtime constructions and records the bytes it was given."""

    def __init__(self, runtime: Optional[FakeRuntime] = None, error: Optional[Exception] = None):
        self.runtime = runtime or FakeRuntime()
        self.error = error
        self.calls = 0
        self.model_bytes: List[bytes] = []
        self.providers: List[Sequence[str]] = []

    def __call__(self, model_bytes: bytes, providers: Sequence[str]) -> FakeRuntime:
        self.calls += 1
        self.model_bytes.append(model_bytes)
        self.providers.append(providers)
        if self.error is not None:
            raise self.error
        return self.runtime


class MirrorServer:
    """``httpx.MockTransport`` backed by a url -> response table."""

    def __init__(self, routes: Optional[Dict[str, Route]] = None):
        self.routes: Dict[str, Route] = dict(routes or {})
        self.requests: List[str] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        route = self.routes.get(url)
        if route is None:
            return httpx.Response(404)
        if isinstance(route, Exception):
            raise route
        if callable(route):
            return route(request)
        return route


def ok_response(body: bytes = MODEL_BYTES) -> Callable[[httpx.Request], httpx.Response]:
    """Fresh 200 response per request (responses cannot be reused)."""
    return lambda request: httpx.Response(200, content=body)


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "models"


@pytest.fixture
def config(cache_dir: Path) -> InpaintConfig:
    return InpaintConfig(model_urls=[MIRROR_A, MIRROR_B], cache_dir=cache_dir, chunk_size=256)


@pytest.fixture
def server() -> MirrorServer:
    return MirrorServer({MIRROR_A: ok_response()})


@pytest.fixture
def factory() -> FakeSessionFactory:
    return FakeSessionFactory()


@pytest.fixture
def context(config: InpaintConfig, server: MirrorServer, factory: FakeSessionFactory) -> InpaintContext:
    return InpaintContext(config, session_factory=factory, transport=server.transport)


def make_pixels(width: int, height: int, seed: int = 0) -> PixelBuffer:
    """Random RGBA buffer with a non-trivial alpha channel."""
    rng = np.random.default_rng(seed)
    data = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    return PixelBuffer(width, height, data)


def make_gradient(width: int, height: int) -> PixelBuffer:
    """Smooth opaque RGBA gradient, friendly to resampling."""
    xs = np.linspace(0, 255, width, dtype=np.float32)[np.newaxis, :]
    ys = np.linspace(0, 255, height, dtype=np.float32)[:, np.newaxis]
    data = np.empty((height, width, 4), dtype=np.uint8)
    data[:, :, 0] = np.broadcast_to(xs, (height, width)).astype(np.uint8)
    data[:, :, 1] = np.broadcast_to(ys, (height, width)).astype(np.uint8)
    data[:, :, 2] = ((xs + ys) / 2).astype(np.uint8)
    data[:, :, 3] = 255
    return PixelBuffer(width, height, data)
