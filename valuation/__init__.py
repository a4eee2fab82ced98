"""
Guideline valuation engine.

Includes:
- Area unit conversion (bigha/katha/lessa)
- Cascading hierarchy selection
- Geographical factor resolution
- Parameter band selection
- Valuation formula
- Bounded calculation history and versioned form snapshots

The ValuationService pipeline lives in valuation.service; it depends on the
masterdata package and is imported from there directly.
"""

from valuation.area import normalize, is_invalid_area_text, LESSA_PER_BIGHA, LESSA_PER_KATHA
from valuation.errors import (
    ValuationError, MissingRequiredField, ResolutionFailure, NoFactorAvailable,
    HistoryEntryNotFound, SnapshotVersionError,
)
from valuation.models import (
    AreaType, FactorSource, District, Circle, Mouza, Lot, Village, LandCategory,
    GeographicalFactor, ParameterBand, Parameter, AreaDetails, CurrentLandUse,
    ProposedLandUse, land_use_from_form, LocationAttributes, ValuationRequest,
    ValuationBreakdown, ValuationResult,
)
from valuation.settings import EngineSettings, BandCombination
from valuation.selection import HierarchySelection, Selected, Unselected
from valuation.factors import FactorResolver, FactorResolution
from valuation.bands import BandSelector, BandSelection
from valuation.formula import ValuationFormulaEngine, ResolvedInputs, compute_plot_base_value
from valuation.history import CalculationHistoryStore, CalculationHistoryEntry
from valuation.snapshot import FormSnapshot, SNAPSHOT_VERSION
from valuation.debounce import Debouncer

__all__ = [
    # Area
    "normalize",
    "is_invalid_area_text",
    "LESSA_PER_BIGHA",
    "LESSA_PER_KATHA",
    # Errors
    "ValuationError",
    "MissingRequiredField",
    "ResolutionFailure",
    "NoFactorAvailable",
    "HistoryEntryNotFound",
    "SnapshotVersionError",
    # Models
    "AreaType",
    "FactorSource",
    "District",
    "Circle",
    "Mouza",
    "Lot",
    "Village",
    "LandCategory",
    "GeographicalFactor",
    "ParameterBand",
    "Parameter",
    "AreaDetails",
    "CurrentLandUse",
    "ProposedLandUse",
    "land_use_from_form",
    "LocationAttributes",
    "ValuationRequest",
    "ValuationBreakdown",
    "ValuationResult",
    # Engine
    "EngineSettings",
    "BandCombination",
    "HierarchySelection",
    "Selected",
    "Unselected",
    "FactorResolver",
    "FactorResolution",
    "BandSelector",
    "BandSelection",
    "ValuationFormulaEngine",
    "ResolvedInputs",
    "compute_plot_base_value",
    "CalculationHistoryStore",
    "CalculationHistoryEntry",
    "FormSnapshot",
    "SNAPSHOT_VERSION",
    "Debouncer",
]
