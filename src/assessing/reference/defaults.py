"""Calculation defaults loaded from YAML."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from assessing.reference.models import AcreageDiscountSettings, CalculationConfig


_DEFAULT_CONFIG_PATH = (
    Path(__file__).resolve().parents[3] / "config" / "calculation_defaults.yml"
)


class CalculationDefaults:
    """Seeds per-municipality configuration from a YAML defaults file."""

    def __init__(self, config_path: str | Path | None = None) -> None:
        self._config_path = Path(config_path) if config_path else _DEFAULT_CONFIG_PATH
        self._raw: dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        with open(self._config_path) as fh:
            self._raw = yaml.safe_load(fh) or {}
        # Malformed values surface here instead of on the first calculation.
        self.calculation_config("defaults", 0)
        self.acreage_discount()

    @property
    def raw(self) -> dict[str, Any]:
        return dict(self._raw)

    def calculation_config(self, municipality_id: str, effective_year: int) -> CalculationConfig:
        data = {k: v for k, v in self._raw.items() if k != "acreage_discount"}
        return CalculationConfig(
            municipality_id=municipality_id,
            effective_year=effective_year,
            **data,
        )

    def acreage_discount(self) -> AcreageDiscountSettings:
        return AcreageDiscountSettings(**(self._raw.get("acreage_discount") or {}))
