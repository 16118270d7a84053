from __future__ import annotations

from pathlib import Path

import pytest

from blockfit.config import ConfigError, FitConfig


def test_defaults():
    config = FitConfig().validate()
    assert config.groups == -1 and config.scan_groups
    assert config.num_samples == 100_000
    assert config.out_format == "plain"
    assert config.block_size == 65_536
    assert config.init_method == "greedy"
    assert config.log_period == 8192
    assert config.seed is None


@pytest.mark.parametrize("kwargs", [
    {"groups": 1},
    {"groups": 0},
    {"groups": -2},
    {"num_samples": -1},
    {"out_format": "xml"},
    {"block_size": 0},
    {"init_method": "spectral"},
    {"log_period": 0},
    {"seed": -5},
    {"max_burn_in_blocks": 0},
])
def test_invalid_values(kwargs):
    with pytest.raises(ConfigError):
        FitConfig(**kwargs).validate()


def test_override_ignores_none():
    config = FitConfig(groups=4).override(groups=None, seed=3, out_format="json")
    assert config.groups == 4
    assert config.seed == 3
    assert config.out_format == "json"


def test_override_validates():
    with pytest.raises(ConfigError):
        FitConfig().override(block_size=-1)


def test_from_yaml(tmp_path: Path):
    path = tmp_path / "fit.yaml"
    path.write_text("groups: 3\nnum_samples: 0\ninit_method: random\nseed: 42\n")

    config = FitConfig.from_yaml(path)
    assert config == FitConfig(groups=3, num_samples=0, init_method="random", seed=42)
    assert FitConfig.from_dict(config.to_dict()) == config


def test_empty_yaml_gives_defaults(tmp_path: Path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    assert FitConfig.from_yaml(path) == FitConfig()


@pytest.mark.parametrize("text", ["groups: [1, 2\n", "- 1\n- 2\n", "colour: blue\n"])
def test_bad_yaml(tmp_path: Path, text: str):
    path = tmp_path / "bad.yaml"
    path.write_text(text)
    with pytest.raises(ConfigError):
        FitConfig.from_yaml(path)


def test_missing_yaml(tmp_path: Path):
    with pytest.raises(ConfigError):
        FitConfig.from_yaml(tmp_path / "missing.yaml")
