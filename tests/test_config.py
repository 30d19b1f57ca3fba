"""Tests for configuration defaults and environment overrides."""

from pathlib import Path

import pytest

from unpaint.config import MODEL_KEY, MODEL_URLS, InpaintConfig


def test_defaults() -> None:
    config = InpaintConfig.from_env({})

    assert config.model_urls == MODEL_URLS
    assert config.model_key == MODEL_KEY
    assert config.input_names == {"image": "image", "mask": "mask"}
    assert config.output_name == "result"
    assert config.providers == ["CPUExecutionProvider"]
    assert config.fixed_size is None
    assert config.cache_dir == Path.home() / ".unpaint" / "models"


def test_env_overrides(tmp_path: Path) -> None:
    config = InpaintConfig.from_env({
        "UNPAINT_CACHE_DIR": str(tmp_path),
        "UNPAINT_MODEL_URLS": "https://a.example/m.onnx, https://b.example/m.onnx,",
        "UNPAINT_MODEL_KEY": "migan-v3",
        "UNPAINT_FIXED_SIZE": "512",
        "UNPAINT_TIMEOUT": "5",
    })

    assert config.cache_dir == tmp_path
    assert config.model_urls == ["https://a.example/m.onnx", "https://b.example/m.onnx"]
    assert config.model_key == "migan-v3"
    assert config.fixed_size == 512
    assert config.timeout == 5.0


def test_explicit_overrides_win_and_none_is_ignored() -> None:
    config = InpaintConfig.from_env(
        {"UNPAINT_FIXED_SIZE": "512"}, fixed_size=256, cache_dir=None
    )
    assert config.fixed_size == 256
    assert config.cache_dir == Path.home() / ".unpaint" / "models"


@pytest.mark.parametrize("kwargs,message", [
    ({"input_names": {"image": "x"}}, "input_names"),
    ({"chunk_size": 0}, "chunk_size"),
    ({"timeout": 0}, "timeout"),
    ({"fixed_size": 0}, "fixed_size"),
])
def test_invalid_values(kwargs, message) -> None:
    with pytest.raises(ValueError, match=message):
        InpaintConfig(**kwargs)
