"""Zone minimum acreage adjustment.

Acreage lines larger than the zone minimum are clipped to the minimum and the
clipped acreage is moved onto a single excess-acreage line. Total acreage is
unchanged by the adjustment.
"""

from __future__ import annotations

import logging

from assessing.core.types import SizeUnit
from assessing.land.models import LandLine, ZoneAdjustmentDetail, ZoneAdjustmentResult
from assessing.reference.models import Zone

logger = logging.getLogger(__name__)

DEFAULT_LAND_USE_TYPE = "RES"
DEFAULT_TOPOGRAPHY = "Level"


def apply_zone_minimum(lines: list[LandLine], zone: Zone | None) -> ZoneAdjustmentResult:
    """Clip oversize acreage lines to ``zone.minimum_acreage``.

    The excess is added to an existing excess-acreage line when there is one;
    otherwise a new excess line is created that inherits land-use type and
    topography from the first line that contributed excess. Clipped and
    receiving lines have their calculated values cleared.
    """
    if zone is None or not zone.minimum_acreage or zone.minimum_acreage <= 0:
        return ZoneAdjustmentResult(lines=list(lines))

    minimum = zone.minimum_acreage
    adjusted_lines: list[LandLine] = []
    details: list[ZoneAdjustmentDetail] = []
    total_excess = 0.0
    first_contributor = LandLine()

    for line in lines:
        if (
            line.size_unit == SizeUnit.ACRES
            and not line.is_excess_acreage
            and line.size > minimum
        ):
            excess = line.size - minimum
            total_excess += excess
            if not details:
                first_contributor = line
            details.append(
                ZoneAdjustmentDetail(
                    line_id=line.line_id,
                    original_acreage=line.size,
                    adjusted_acreage=minimum,
                    excess=excess,
                )
            )
            adjusted_lines.append(line.model_copy(update={"size": minimum, "calculated": None}))
        else:
            adjusted_lines.append(line)

    if total_excess <= 0:
        return ZoneAdjustmentResult(lines=adjusted_lines)

    created = False
    for i, line in enumerate(adjusted_lines):
        if line.is_excess_acreage and line.size_unit == SizeUnit.ACRES:
            adjusted_lines[i] = line.model_copy(
                update={"size": line.size + total_excess, "calculated": None}
            )
            break
    else:
        adjusted_lines.append(
            LandLine(
                land_use_type=first_contributor.land_use_type or DEFAULT_LAND_USE_TYPE,
                size=total_excess,
                size_unit=SizeUnit.ACRES,
                topography=first_contributor.topography or DEFAULT_TOPOGRAPHY,
                condition=100.0,
                is_excess_acreage=True,
                notes=f"Excess acreage above zone minimum of {minimum:g} AC",
            )
        )
        created = True

    logger.info(
        "Zone %s minimum %.3f AC: moved %.3f AC from %d line(s) to excess",
        zone.id, minimum, total_excess, len(details),
    )
    return ZoneAdjustmentResult(
        adjusted=True,
        adjustments=details,
        excess_acreage=total_excess,
        excess_acreage_created=created,
        lines=adjusted_lines,
    )
