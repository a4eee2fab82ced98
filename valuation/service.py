"""
Valuation Service - the public entry point of the valuation pipeline.

    hierarchy codes → base price, lot %, land-use %   (LocationHierarchyResolver)
                    → geographical factor             (FactorResolver)
                    → band weights                    (BandSelector)
                    → formula                         (ValuationFormulaEngine)
                    → history                         (CalculationHistoryStore)

Each computation is all-or-nothing: either a full ValuationResult comes back
or a single ValuationError is raised.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from masterdata.hierarchy import LocationHierarchyResolver
from valuation.bands import BandSelector
from valuation.debounce import Debouncer
from valuation.errors import ResolutionFailure, ValuationError
from valuation.factors import FactorResolution, FactorResolver
from valuation.formula import ResolvedInputs, ValuationFormulaEngine, compute_plot_base_value
from valuation.history import CalculationHistoryEntry, CalculationHistoryStore, describe
from valuation.models import (
    AreaType, LandCategory, ValuationRequest, ValuationResult,
)
from valuation.settings import EngineSettings

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchItem:
    """Outcome of one request in a batch: a result or a structured error."""
    request: ValuationRequest
    result: Optional[ValuationResult] = None
    error: Optional[Dict[str, Any]] = None

    @property
    def ok(self) -> bool:
        return self.result is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "request": self.request.to_dict(),
            "result": self.result.to_dict() if self.result else None,
            "error": self.error,
        }


class ValuationService:
    """
    Resolves master data for a request and runs the formula.

    Usage:
        service = ValuationService(InMemoryMasterData(...))
        result = service.compute_valuation(request)
        entry = service.record_history(request, result)
    """

    def __init__(self, source, settings: Optional[EngineSettings] = None,
                 history: Optional[CalculationHistoryStore] = None):
        """
        Args:
            source: A MasterDataSource, or a LocationHierarchyResolver to share its cache.
            settings: Engine settings. Defaults to EngineSettings().
            history: History store. Defaults to one built from settings.
        """
        self.settings = settings or EngineSettings()
        if isinstance(source, LocationHierarchyResolver):
            self.resolver = source
        else:
            self.resolver = LocationHierarchyResolver(source)
        self.factors = FactorResolver(self.resolver)
        self.engine = ValuationFormulaEngine(self.settings)
        self.history = history or CalculationHistoryStore(
            capacity=self.settings.history_capacity,
            db_path=self.settings.history_path,
        )
        self._band_selector: Optional[BandSelector] = None

        # Auto per-unit preview
        self.last_unit_result: Optional[ValuationResult] = None
        self.last_unit_error: Optional[Exception] = None
        self.debouncer = Debouncer(
            self.compute_unit_valuation,
            delay=self.settings.debounce_seconds,
            on_result=self._set_unit_result,
            on_error=self._set_unit_error,
        )

    @property
    def band_selector(self) -> BandSelector:
        if self._band_selector is None:
            self._band_selector = BandSelector(self.resolver.parameter_bands())
        return self._band_selector

    # ═══════════════════════════════════════════════════════════════════════
    # RESOLUTION
    # ═══════════════════════════════════════════════════════════════════════
    def _land_category(self, category_id: str) -> Optional[LandCategory]:
        if not category_id:
            return None
        category = self.resolver.find_land_category(category_id)
        if category is None:
            raise ResolutionFailure("land category", f"unknown land category '{category_id}'")
        return category

    def resolve_factor(self, request: ValuationRequest) -> FactorResolution:
        return self.factors.resolve_or_default(
            request.district_code, request.circle_code, request.lot_code,
            request.daag_number, default=self.settings.default_factor,
        )

    def resolve_inputs(self, request: ValuationRequest) -> ResolvedInputs:
        """
        Look up everything the formula needs for a request.

        Raises:
            MissingRequiredField: a required code or the land use is absent.
            ResolutionFailure: a code does not exist or a lookup failed.
        """
        self.engine.check_required(request)

        mouza = self.resolver.find_mouza(request.district_code, request.circle_code,
                                         request.mouza_code)
        if mouza is None:
            raise ResolutionFailure("mouza", f"unknown mouza '{request.mouza_code}' in "
                                             f"{request.district_code}/{request.circle_code}")
        lot = self.resolver.find_lot(request.district_code, request.circle_code, request.lot_code)
        if lot is None:
            raise ResolutionFailure("lot", f"unknown lot '{request.lot_code}' in "
                                           f"{request.district_code}/{request.circle_code}")

        land_use = request.land_use
        current = self._land_category(land_use.current_category_id)
        proposed = self._land_category(land_use.effective_category_id) if land_use.land_use_change else None

        try:
            selection = self.band_selector.selection_from_pairs(request.band_selections,
                                                                request.area_type)
        except KeyError as e:
            raise ResolutionFailure("parameter band", f"band {e} is not offered") from e

        return ResolvedInputs(
            mouza_base=mouza.base_price_mouza,
            lot_increase_percent=lot.base_price_increase_lot,
            current_land_use_increase=current.base_price_mouza_increase if current else 0.0,
            proposed_land_use_increase=proposed.base_price_mouza_increase if proposed else 0.0,
            factor=self.resolve_factor(request),
            band_weights=tuple(b.weight_percent for b in selection.bands),
        )

    def village_defaults(self, district_code: str, circle_code: str, mouza_code: str,
                         lot_code: str, village_code: str) -> Tuple[AreaType, Optional[LandCategory]]:
        """Area type and default current land category implied by a village."""
        village = self.resolver.find_village(district_code, circle_code, mouza_code,
                                             lot_code, village_code)
        if village is None:
            return AreaType.RURAL, None
        return village.area_type, self.resolver.default_land_category(village)

    # ═══════════════════════════════════════════════════════════════════════
    # COMPUTATION
    # ═══════════════════════════════════════════════════════════════════════
    def compute_valuation(self, request: ValuationRequest) -> ValuationResult:
        """Full valuation for the request's area."""
        result = self.engine.compute(request, self.resolve_inputs(request))
        log.info(f"Valuation {request.district_code}/{request.circle_code}/"
                 f"{request.mouza_code}/{request.lot_code}: {result.total_value} "
                 f"({request.total_lessa} lessa)")
        return result

    def compute_unit_valuation(self, request: ValuationRequest) -> ValuationResult:
        """Valuation of the same plot for exactly one lessa."""
        return self.compute_valuation(request.per_unit())

    def plot_base_value(self, district_base: float, district_code: str, circle_code: str,
                        lot_code: str, conversion_factor: float,
                        daag_number: Optional[str] = None) -> int:
        """District base × resolved geographical factor × conversion factor."""
        resolution = self.factors.resolve_or_default(district_code, circle_code, lot_code,
                                                     daag_number, default=self.settings.default_factor)
        return compute_plot_base_value(district_base, resolution.factor, conversion_factor)

    def compute_batch(self, requests: Iterable[ValuationRequest],
                      max_workers: int = 4) -> List[BatchItem]:
        """Compute many requests. Each item succeeds or fails on its own; order is kept."""
        requests = list(requests)
        items: List[Optional[BatchItem]] = [None] * len(requests)

        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {
                executor.submit(self.compute_valuation, request): i
                for i, request in enumerate(requests)
            }
            for future in as_completed(futures):
                i = futures[future]
                try:
                    items[i] = BatchItem(request=requests[i], result=future.result())
                except ValuationError as e:
                    log.warning(f"Batch item {i} failed: {e}")
                    items[i] = BatchItem(request=requests[i], error=e.to_dict())

        log.info(f"Batch: {sum(1 for item in items if item.ok)}/{len(items)} computed")
        return items

    # ═══════════════════════════════════════════════════════════════════════
    # AUTO PER-UNIT PREVIEW
    # ═══════════════════════════════════════════════════════════════════════
    @staticmethod
    def is_ready(request: ValuationRequest) -> bool:
        """All four hierarchy codes and the effective land-use category are chosen."""
        codes = (request.district_code, request.circle_code, request.mouza_code, request.lot_code)
        return (all(codes) and request.land_use is not None
                and bool(request.land_use.effective_category_id))

    def on_form_change(self, request: ValuationRequest) -> bool:
        """
        Schedule a debounced per-unit computation once the request is complete.

        An incomplete request cancels any pending computation and clears the
        last preview, which belonged to an earlier input set.
        """
        if not self.is_ready(request):
            self.debouncer.cancel()
            self.last_unit_result = None
            self.last_unit_error = None
            return False
        self.debouncer.trigger(request)
        return True

    def _set_unit_result(self, result: ValuationResult):
        self.last_unit_result = result
        self.last_unit_error = None

    def _set_unit_error(self, error: Exception):
        self.last_unit_result = None
        self.last_unit_error = error

    # ═══════════════════════════════════════════════════════════════════════
    # VALIDATION AND COMPARISON
    # ═══════════════════════════════════════════════════════════════════════
    @staticmethod
    def validate_request(request: ValuationRequest, require_area: bool = True) -> List[str]:
        """Human-readable problems with a request. Empty when it can be computed."""
        errors = []
        if not request.district_code:
            errors.append("District is required")
        if not request.circle_code:
            errors.append("Circle is required")
        if not request.mouza_code:
            errors.append("Mouza is required")
        if not request.lot_code:
            errors.append("Lot is required")
        if request.land_use is None or not request.land_use.effective_category_id:
            errors.append("Land use category is required")
        if not isinstance(request.area_type, AreaType):
            errors.append("Area type must be RURAL or URBAN")
        if require_area and request.total_lessa <= 0:
            errors.append("Area must be greater than zero")
        return errors

    @staticmethod
    def compare_valuations(results: Iterable[ValuationResult]) -> Dict[str, float]:
        """
        Summary of headline values across scenarios.

        Returns:
            count, highest, lowest, average and population variance of total_value.
        """
        values = pd.Series([r.total_value for r in results], dtype="float64")
        if values.empty:
            raise ValueError("Nothing to compare")
        return {
            "count": int(values.count()),
            "highest": float(values.max()),
            "lowest": float(values.min()),
            "average": float(values.mean()),
            "variance": float(values.var(ddof=0)),
        }

    # ═══════════════════════════════════════════════════════════════════════
    # HISTORY
    # ═══════════════════════════════════════════════════════════════════════
    def record_history(self, request: ValuationRequest,
                       result: ValuationResult) -> CalculationHistoryEntry:
        district = self.resolver.find_district(request.district_code)
        circle = self.resolver.find_circle(request.district_code, request.circle_code)
        description = describe(request,
                               district.name if district else None,
                               circle.name if circle else None)
        return self.history.record(request, result, description)

    def list_history(self) -> List[CalculationHistoryEntry]:
        return self.history.list()

    def restore_history(self, entry_id: str) -> Tuple[ValuationRequest, ValuationResult]:
        return self.history.restore(entry_id)

    def clear_history(self):
        self.history.clear()
