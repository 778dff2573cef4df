"""Land value calculator.

Turns each land-use line into market, current-use and assessed values, and
folds a card's views and waterfronts into card-level totals. Line values are
kept at full precision; rounding to the nearest hundred happens only when the
card totals are rolled up.
"""

from __future__ import annotations

import logging

from assessing.core.errors import MissingZoneError
from assessing.core.rounding import round_to_nearest_hundred
from assessing.core.types import AttributeKind
from assessing.land.ladder import frontage_rate, interpolate
from assessing.land.models import (
    CardLandResult,
    LandAssessment,
    LandLine,
    LandLineValues,
    LandTotals,
    PropertyView,
    PropertyWaterfront,
    ViewValue,
    WaterfrontValue,
)
from assessing.reference.context import CalculationContext

logger = logging.getLogger(__name__)

DEFAULT_SPI = 50.0


class LandCalculator:
    """Computes land, view and waterfront values against one context."""

    def __init__(self, context: CalculationContext) -> None:
        self._ctx = context

    @property
    def context(self) -> CalculationContext:
        return self._ctx

    # ------------------------------------------------------------------
    # Land lines
    # ------------------------------------------------------------------

    def calculate_line(self, line: LandLine, assessment: LandAssessment) -> LandLine:
        """Return a copy of ``line`` with its ``calculated`` values filled in."""
        if not assessment.zone_id:
            raise MissingZoneError(
                f"Land assessment for property {assessment.property_id} "
                f"card {assessment.card_number} has no zone",
                {"property_id": assessment.property_id, "card_number": assessment.card_number},
            )

        acreage = line.acreage
        frontage = line.frontage
        values = LandLineValues()

        if acreage > 0:
            if line.is_excess_acreage:
                values.base_rate, values.base_value = self._excess_base(assessment.zone_id, acreage)
            else:
                values.base_value = self._ladder_value(assessment.zone_id, acreage)
                values.base_rate = values.base_value / acreage
        elif frontage > 0:
            tiers = self._ctx.ladder(assessment.zone_id)
            if not tiers:
                logger.warning("No land ladder for zone %s; frontage line valued at 0", assessment.zone_id)
            values.base_rate = frontage_rate(tiers)
            values.base_value = values.base_rate * frontage

        values.economy_of_scale_factor = self._discount_percentage(acreage)

        if values.base_value == 0:
            return line.model_copy(update={"calculated": values})

        values.neighborhood_factor = self._ctx.attribute_factor(
            AttributeKind.NEIGHBORHOOD, assessment.neighborhood_id
        )
        values.site_factor = self._ctx.attribute_factor(
            AttributeKind.SITE, assessment.site_conditions_id
        )
        values.driveway_factor = self._ctx.attribute_factor(
            AttributeKind.DRIVEWAY, assessment.driveway_type_id
        )
        values.road_factor = self._ctx.attribute_factor(AttributeKind.ROAD, assessment.road_type_id)
        values.topography_factor = self._ctx.topography_factor(line.topography)
        values.condition_factor = line.condition / 100.0 if line.condition is not None else 1.0

        values.market_value = (
            values.base_value
            * values.neighborhood_factor
            * values.site_factor
            * values.driveway_factor
            * values.road_factor
            * values.topography_factor
            * values.condition_factor
        )

        category = self._ctx.current_use_category(line.land_use_type)
        if category is not None:
            spi = line.spi if line.spi is not None else DEFAULT_SPI
            spi_ratio = min(max(spi / 100.0, 0.0), 1.0)
            rate = category.min_rate + (category.max_rate - category.min_rate) * spi_ratio
            values.current_use_value = rate * acreage
            values.current_use_credit = max(0.0, values.market_value - values.current_use_value)
            values.assessed_value = values.current_use_value
            values.is_current_use = True
        else:
            values.assessed_value = values.market_value

        return line.model_copy(update={"calculated": values})

    def _ladder_value(self, zone_id: str, acreage: float) -> float:
        tiers = self._ctx.ladder(zone_id)
        if not tiers:
            logger.warning("No land ladder for zone %s; line valued at 0", zone_id)
            return 0.0
        return interpolate(tiers, acreage)

    def _excess_base(self, zone_id: str, acreage: float) -> tuple[float, float]:
        zone = self._ctx.zone(zone_id)
        rate = zone.excess_land_cost_per_acre if zone is not None else 0.0
        if not rate:
            logger.warning("Zone %s has no excess land cost per acre", zone_id)
            return 0.0, 0.0
        value = rate * acreage
        discount = self._discount_percentage(acreage)
        return rate, value * (1 - discount / 100.0)

    def _discount_percentage(self, acreage: float) -> float:
        settings = self._ctx.acreage_discount
        if settings is None or acreage <= 0:
            return 0.0
        return settings.discount_percentage(acreage)

    # ------------------------------------------------------------------
    # Views and waterfronts
    # ------------------------------------------------------------------

    def calculate_view(self, view: PropertyView, zone_id: str | None) -> ViewValue:
        base = view.base_value
        if base is None:
            zone = self._ctx.zone(zone_id)
            base = zone.base_view_value if zone is not None else 0.0
        value = (
            base
            * self._ctx.view_factor(view.subject_id)
            * self._ctx.view_factor(view.width_id)
            * self._ctx.view_factor(view.distance_id)
            * self._ctx.view_factor(view.depth_id)
            * view.condition_factor
        )
        return ViewValue(
            view_id=view.id,
            market_value=value,
            assessed_value=0.0 if view.current_use else value,
        )

    def calculate_waterfront(
        self, waterfront: PropertyWaterfront, card_current_use: bool = False
    ) -> WaterfrontValue:
        value = (
            waterfront.base_value
            * waterfront.frontage_factor
            * self._ctx.waterfront_factor(waterfront.access_id)
            * self._ctx.waterfront_factor(waterfront.topography_id)
            * self._ctx.waterfront_factor(waterfront.location_id)
            * (waterfront.condition / 100.0)
        )
        exempt = waterfront.current_use or card_current_use
        return WaterfrontValue(
            waterfront_id=waterfront.id,
            market_value=value,
            assessed_value=0.0 if exempt else value,
        )

    # ------------------------------------------------------------------
    # Card
    # ------------------------------------------------------------------

    def calculate_card(
        self,
        assessment: LandAssessment,
        views: list[PropertyView] | None = None,
        waterfronts: list[PropertyWaterfront] | None = None,
    ) -> CardLandResult:
        """Calculate every line of a card plus its views and waterfronts."""
        lines = [self.calculate_line(line, assessment) for line in assessment.land_use_lines]
        card_current_use = any(l.calculated is not None and l.calculated.is_current_use for l in lines)

        card_views = [
            v for v in views or [] if v.is_active and v.card_number == assessment.card_number
        ]
        card_waterfronts = [
            w for w in waterfronts or [] if w.is_active and w.card_number == assessment.card_number
        ]
        view_values = [self.calculate_view(v, assessment.zone_id) for v in card_views]
        waterfront_values = [
            self.calculate_waterfront(w, card_current_use) for w in card_waterfronts
        ]

        totals = self.card_totals(lines, view_values, waterfront_values)
        totals.has_current_use = (
            card_current_use
            or any(v.current_use for v in card_views)
            or any(w.current_use for w in card_waterfronts)
        )
        return CardLandResult(
            lines=lines, views=view_values, waterfronts=waterfront_values, totals=totals
        )

    @staticmethod
    def card_totals(
        lines: list[LandLine],
        views: list[ViewValue],
        waterfronts: list[WaterfrontValue],
    ) -> LandTotals:
        computed = [l.calculated for l in lines if l.calculated is not None]

        land_market = round_to_nearest_hundred(sum(c.market_value for c in computed))
        land_cu = round_to_nearest_hundred(sum(c.current_use_value for c in computed))
        land_credit = round_to_nearest_hundred(sum(c.current_use_credit for c in computed))
        land_assessed = round_to_nearest_hundred(sum(c.assessed_value for c in computed))
        view_market = round_to_nearest_hundred(sum(v.market_value for v in views))
        view_assessed = round_to_nearest_hundred(sum(v.assessed_value for v in views))
        wf_market = round_to_nearest_hundred(sum(w.market_value for w in waterfronts))
        wf_assessed = round_to_nearest_hundred(sum(w.assessed_value for w in waterfronts))

        return LandTotals(
            total_acreage=round(sum(l.acreage for l in lines), 3),
            total_frontage=round(sum(l.frontage for l in lines), 2),
            land_market_value=land_market,
            land_current_use_value=land_cu,
            land_current_use_credit=land_credit,
            land_assessed_value=land_assessed,
            view_market_value=view_market,
            view_assessed_value=view_assessed,
            waterfront_market_value=wf_market,
            waterfront_assessed_value=wf_assessed,
            total_market_value=land_market + view_market + wf_market,
            total_assessed_value=land_assessed + view_assessed + wf_assessed,
            total_current_use_credit=land_credit,
            has_current_use=any(c.is_current_use for c in computed),
        )
