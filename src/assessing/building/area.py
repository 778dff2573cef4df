"""Effective area from building sketches."""

from __future__ import annotations

import logging

from assessing.building.models import SketchArea

logger = logging.getLogger(__name__)


def effective_area(sub_areas: list[SketchArea], rates: dict[str, float]) -> float:
    """Sum sketch sub-areas weighted by their area-description rate.

    Unknown description codes are counted at full weight.
    """
    total = 0.0
    for sub_area in sub_areas:
        rate = rates.get(sub_area.description_code)
        if rate is None:
            logger.warning(
                "Unknown area description %r; counting at rate 1.0", sub_area.description_code
            )
            rate = 1.0
        total += sub_area.area * rate
    return round(total, 2)


class SketchAreaStore:
    """In-memory sketch sub-areas keyed by (property, card)."""

    def __init__(self, rates: dict[str, float] | None = None) -> None:
        self._rates: dict[str, float] = dict(rates or {})
        self._areas: dict[tuple[str, int], list[SketchArea]] = {}

    def set_rate(self, description_code: str, rate: float) -> None:
        self._rates[description_code] = rate

    def set_areas(self, property_id: str, card_number: int, sub_areas: list[SketchArea]) -> None:
        self._areas[(property_id, card_number)] = list(sub_areas)

    def get_effective_area(self, property_id: str, card_number: int) -> float | None:
        sub_areas = self._areas.get((property_id, card_number))
        if sub_areas is None:
            return None
        return effective_area(sub_areas, self._rates)
