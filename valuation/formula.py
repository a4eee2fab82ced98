"""
Valuation Formula Engine - turns resolved inputs into plot values.

Order of evaluation:

    plot_level_base  = round(mouza_base × (1 + lot%/100) × (1 + land_use%/100))
    adjusted_base    = round(plot_level_base × location_multiplier)
    per_unit_value   = pipeline evaluated for 1 lessa
    area_based_total = round(per_unit_value × total_lessa)
    total_with_rate  = round(adjusted_base × total_lessa × (1 + area_type_rate))

Every monetary stage is rounded half-up to a whole currency unit. Arithmetic
runs on Decimal so identical inputs always give identical outputs.
"""

import logging
import math
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Tuple

from valuation.errors import MissingRequiredField
from valuation.factors import FactorResolution
from valuation.models import (
    FactorSource, ValuationBreakdown, ValuationRequest, ValuationResult,
)
from valuation.settings import BandCombination, EngineSettings

log = logging.getLogger(__name__)

_ONE = Decimal(1)
_HUNDRED = Decimal(100)


def to_decimal(value) -> Decimal:
    """Decimal from int/float/str via its shortest repr, so 1.1 stays 1.1."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_currency(value) -> int:
    """Round half-up to a whole currency unit."""
    return int(to_decimal(value).quantize(_ONE, rounding=ROUND_HALF_UP))


def _is_number(value) -> bool:
    """Present and finite; NaN or infinity counts as missing."""
    return value is not None and math.isfinite(value)


def percent_multiplier(percent) -> Decimal:
    return _ONE + to_decimal(percent) / _HUNDRED


def compute_plot_base_value(district_base: float, geographical_factor: float,
                            conversion_factor: float) -> int:
    """District base (minimum zonal value) × geographical factor × conversion factor."""
    return round_currency(
        to_decimal(district_base) * to_decimal(geographical_factor) * to_decimal(conversion_factor)
    )


@dataclass(frozen=True)
class ResolvedInputs:
    """
    Master-data values looked up for one request.

    Both land-use increases may be present; the request's land-use variant
    decides which one applies.
    """
    mouza_base: Optional[float]
    lot_increase_percent: Optional[float]
    current_land_use_increase: float = 0.0
    proposed_land_use_increase: float = 0.0
    factor: Optional[FactorResolution] = None
    band_weights: Tuple[float, ...] = ()


@dataclass
class _Stages:
    plot_level_base: int
    adjusted_base: int
    value_for_area: int
    land_use_increase: float
    attribute_weight: float
    factor: float
    factor_source: FactorSource
    weights: List[float] = field(default_factory=list)


class ValuationFormulaEngine:
    """Pure valuation formula. Holds settings only, no per-computation state."""

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or EngineSettings()

    # ─────────────────────────────────────────────────────────────────────
    # Validation
    # ─────────────────────────────────────────────────────────────────────
    @staticmethod
    def check_required(request: ValuationRequest, inputs: Optional[ResolvedInputs] = None):
        """
        Raise MissingRequiredField for the first absent mandatory input.

        Hierarchy codes and the land-use category are never defaulted.
        """
        for name in ("district_code", "circle_code", "mouza_code", "lot_code"):
            if not (getattr(request, name) or "").strip():
                raise MissingRequiredField(name)
        if request.land_use is None or not request.land_use.effective_category_id:
            raise MissingRequiredField("land_use")
        if inputs is not None:
            if not _is_number(inputs.mouza_base):
                raise MissingRequiredField("mouza_base")
            if not _is_number(inputs.lot_increase_percent):
                raise MissingRequiredField("lot_increase_percent")

    # ─────────────────────────────────────────────────────────────────────
    # Stages
    # ─────────────────────────────────────────────────────────────────────
    def attribute_weights(self, request: ValuationRequest) -> List[float]:
        weights = self.settings.attribute_weights
        return [weights.get(flag, 0.0) for flag in request.location.active_flags()]

    def location_multiplier(self, weights: List[float]) -> Decimal:
        if self.settings.band_combination == BandCombination.COMPOUND:
            multiplier = _ONE
            for weight in weights:
                multiplier *= percent_multiplier(weight)
            return multiplier
        return percent_multiplier(sum(to_decimal(w) for w in weights))

    def _stages(self, request: ValuationRequest, inputs: ResolvedInputs,
                total_lessa) -> _Stages:
        if request.land_use.land_use_change:
            land_use_increase = inputs.proposed_land_use_increase
        else:
            land_use_increase = inputs.current_land_use_increase

        if inputs.factor is not None:
            factor, factor_source = inputs.factor.factor, inputs.factor.source
        else:
            factor, factor_source = self.settings.default_factor, FactorSource.DEFAULT

        base = to_decimal(inputs.mouza_base)
        if self.settings.apply_geographical_factor:
            base *= to_decimal(factor)

        plot_level_base = round_currency(
            base
            * percent_multiplier(inputs.lot_increase_percent)
            * percent_multiplier(land_use_increase)
        )

        attribute = self.attribute_weights(request)
        weights = list(inputs.band_weights) + attribute
        adjusted_base = round_currency(plot_level_base * self.location_multiplier(weights))
        value_for_area = round_currency(adjusted_base * to_decimal(total_lessa))

        return _Stages(
            plot_level_base=plot_level_base,
            adjusted_base=adjusted_base,
            value_for_area=value_for_area,
            land_use_increase=land_use_increase,
            attribute_weight=sum(attribute),
            factor=factor,
            factor_source=factor_source,
            weights=weights,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Public
    # ─────────────────────────────────────────────────────────────────────
    def compute(self, request: ValuationRequest, inputs: ResolvedInputs) -> ValuationResult:
        """
        Compute the full valuation for a request.

        Raises:
            MissingRequiredField: a required code, the land use, or a resolved
                base value is absent. Nothing is computed in that case.
        """
        self.check_required(request, inputs)

        total_lessa = request.total_lessa
        stages = self._stages(request, inputs, total_lessa)
        per_unit_value = self._stages(request, inputs, 1).value_for_area
        area_based_total = round_currency(per_unit_value * to_decimal(total_lessa))

        rate = self.settings.rate_for(request.area_type.value)
        total_with_rate = round_currency(
            stages.adjusted_base * to_decimal(total_lessa) * (_ONE + to_decimal(rate))
        )

        breakdown = ValuationBreakdown(
            mouza_base=inputs.mouza_base,
            lot_increase_percent=inputs.lot_increase_percent,
            land_use_increase_percent=stages.land_use_increase,
            land_use_change=request.land_use.land_use_change,
            land_category_id=request.land_use.effective_category_id,
            geographical_factor=stages.factor,
            factor_source=stages.factor_source.value,
            plot_level_base=stages.plot_level_base,
            band_weight_percent=sum(inputs.band_weights),
            attribute_weight_percent=stages.attribute_weight,
            adjusted_base=stages.adjusted_base,
            per_unit_value=per_unit_value,
            total_lessa=total_lessa,
            area_based_total=area_based_total,
            area_type=request.area_type.value,
            area_type_rate=rate,
            total_value_with_rate=total_with_rate,
        )
        log.debug(f"Computed {request.district_code}/{request.circle_code}/{request.mouza_code}/"
                  f"{request.lot_code}: base {stages.plot_level_base}, total {total_with_rate}")
        return ValuationResult(total_value=total_with_rate, per_unit_value=per_unit_value,
                               breakdown=breakdown)
