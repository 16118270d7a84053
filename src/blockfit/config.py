from dataclasses import dataclass, asdict, fields, replace
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Union, get_args

import yaml

InitMethodName = Literal["greedy", "random"]
OutputFormatName = Literal["plain", "json", "null"]


class ConfigError(ValueError):
    """ Raised for invalid configuration values before any fitting starts. """


@dataclass(frozen=True)
class FitConfig:
    """
    Settings of one blockmodel fit.

    groups: fixed number of blocks, or -1 to scan K = 2..floor(sqrt(n)).
    num_samples: steps taken after convergence; 0 keeps sampling until stopped.
    block_size: MCMC steps per convergence check.
    max_burn_in_blocks: optional cap on the number of burn-in blocks.
    seed: random seed, None for a fresh one.
    """
    groups: int = -1
    num_samples: int = 100_000
    out_format: OutputFormatName = "plain"
    block_size: int = 65_536
    init_method: InitMethodName = "greedy"
    log_period: int = 8192
    seed: Optional[int] = None
    max_burn_in_blocks: Optional[int] = None
    greedy_max_steps: int = 1000

    def validate(self) -> "FitConfig":
        if self.groups != -1 and self.groups < 2:
            raise ConfigError(f"groups must be -1 (scan) or at least 2, got {self.groups}")
        if self.num_samples < 0:
            raise ConfigError(f"samples must be non-negative, got {self.num_samples}")
        if self.out_format not in get_args(OutputFormatName):
            raise ConfigError(f"Unknown output format: {self.out_format}")
        if self.block_size < 1:
            raise ConfigError(f"block size must be positive, got {self.block_size}")
        if self.init_method not in get_args(InitMethodName):
            raise ConfigError(f"Unknown initialization method: {self.init_method}")
        if self.log_period < 1:
            raise ConfigError(f"log period must be positive, got {self.log_period}")
        if self.seed is not None and self.seed < 0:
            raise ConfigError(f"seed must be non-negative, got {self.seed}")
        if self.max_burn_in_blocks is not None and self.max_burn_in_blocks < 1:
            raise ConfigError(f"max burn-in blocks must be positive, got {self.max_burn_in_blocks}")
        if self.greedy_max_steps < 1:
            raise ConfigError(f"greedy max steps must be positive, got {self.greedy_max_steps}")
        return self

    @property
    def scan_groups(self) -> bool:
        return self.groups == -1

    def override(self, **kwargs: Any) -> "FitConfig":
        """ Copy with the given fields replaced; None values are ignored. """
        updates = {k: v for k, v in kwargs.items() if v is not None}
        return replace(self, **updates).validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "FitConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        try:
            return cls(**values).validate()
        except TypeError as exc:
            raise ConfigError(str(exc)) from None

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "FitConfig":
        """ Load a config from a YAML mapping of field names to values. """
        try:
            values = yaml.safe_load(Path(path).read_text())
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigError(f"Cannot read config file {path}: {exc}") from None

        if values is None:
            values = {}
        if not isinstance(values, dict):
            raise ConfigError(f"Config file {path} must contain a mapping.")
        return cls.from_dict(values)
