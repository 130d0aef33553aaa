# packopt_api/config.py
"""
Tunable constants for the optimizer.

The scoring weights and the heavy-item box cap are empirical; they live here
rather than in the algorithm so they can be changed per deployment through
`PACKOPT_*` environment variables (see `Settings.from_env`).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Callable, Mapping, Optional, Tuple, TypeVar

T = TypeVar("T")

ENV_PREFIX = "PACKOPT_"


@dataclass(frozen=True)
class Settings:
    """
    Optimizer configuration.

    Scoring (per trial box): count_weight * packed_items
    + utilization_weight * volume_utilization - cost_weight * box_cost.
    """

    count_weight: float = 10.0
    utilization_weight: float = 1.0
    cost_weight: float = 5.0

    max_iterations: int = 1000
    min_space_extent: float = 0.5
    emergency_utilization: float = 95.0

    # Policy thresholds
    heavy_item_weight: float = 15.0
    heavy_box_weight_cap: float = 40.0
    thin_item_height: float = 1.0
    light_item_weight: float = 1.0

    # Evaluation
    flat_rate_per_item: float = 9.0
    dim_divisor: float = 139.0  # in^3/lb, US domestic

    parallel_trials: bool = False
    max_workers: int = 4

    # Strategy augmentor (disabled unless an API key is set)
    augmentor_api_key: Optional[str] = field(default=None, repr=False)
    augmentor_base_url: str = "https://api.withmartian.com/v1"
    augmentor_models: Tuple[str, ...] = ("openai/gpt-4.1-mini",)
    augmentor_timeout: float = 10.0

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError("max_iterations must be >= 1")
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        if self.dim_divisor <= 0:
            raise ValueError("dim_divisor must be positive")
        if self.augmentor_timeout <= 0:
            raise ValueError("augmentor_timeout must be positive")

    @property
    def augmentor_enabled(self) -> bool:
        return bool(self.augmentor_api_key)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from `PACKOPT_*` variables, defaulting anything unset."""
        env = os.environ if environ is None else environ
        defaults = cls()

        def read(name: str, parse: Callable[[str], T], default: T) -> T:
            key = ENV_PREFIX + name
            raw = env.get(key)
            if raw is None or raw.strip() == "":
                return default
            try:
                return parse(raw.strip())
            except ValueError as exc:
                raise ValueError(f"Invalid value for {key}: {raw!r}") from exc

        return cls(
            count_weight=read("SCORE_COUNT_WEIGHT", float, defaults.count_weight),
            utilization_weight=read(
                "SCORE_UTILIZATION_WEIGHT", float, defaults.utilization_weight
            ),
            cost_weight=read("SCORE_COST_WEIGHT", float, defaults.cost_weight),
            max_iterations=read("MAX_ITERATIONS", int, defaults.max_iterations),
            min_space_extent=read(
                "MIN_SPACE_EXTENT", float, defaults.min_space_extent
            ),
            emergency_utilization=read(
                "EMERGENCY_UTILIZATION", float, defaults.emergency_utilization
            ),
            heavy_item_weight=read(
                "HEAVY_ITEM_WEIGHT", float, defaults.heavy_item_weight
            ),
            heavy_box_weight_cap=read(
                "HEAVY_BOX_WEIGHT_CAP", float, defaults.heavy_box_weight_cap
            ),
            thin_item_height=read("THIN_ITEM_HEIGHT", float, defaults.thin_item_height),
            light_item_weight=read(
                "LIGHT_ITEM_WEIGHT", float, defaults.light_item_weight
            ),
            flat_rate_per_item=read(
                "FLAT_RATE_PER_ITEM", float, defaults.flat_rate_per_item
            ),
            dim_divisor=read("DIM_DIVISOR", float, defaults.dim_divisor),
            parallel_trials=read("PARALLEL_TRIALS", _parse_bool, defaults.parallel_trials),
            max_workers=read("MAX_WORKERS", int, defaults.max_workers),
            augmentor_api_key=env.get(ENV_PREFIX + "AUGMENTOR_API_KEY") or None,
            augmentor_base_url=read(
                "AUGMENTOR_BASE_URL", str, defaults.augmentor_base_url
            ),
            augmentor_models=read(
                "AUGMENTOR_MODELS", _parse_csv, defaults.augmentor_models
            ),
            augmentor_timeout=read(
                "AUGMENTOR_TIMEOUT", float, defaults.augmentor_timeout
            ),
        )


def _parse_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    raise ValueError(raw)


def _parse_csv(raw: str) -> Tuple[str, ...]:
    values = tuple(part.strip() for part in raw.split(",") if part.strip())
    if not values:
        raise ValueError(raw)
    return values


DEFAULT_SETTINGS = Settings()

__all__ = ["Settings", "DEFAULT_SETTINGS", "ENV_PREFIX"]
