"""
Core data models for the guideline valuation engine.

Master-data records are read-only snapshots handed over by a MasterDataSource.
Requests and results are frozen: a result is never mutated, only superseded.
"""

from dataclasses import dataclass, field, asdict, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from valuation.area import normalize, to_quantity


class AreaType(Enum):
    """Area classification of a village; drives the market-rate surcharge."""
    RURAL = "RURAL"
    URBAN = "URBAN"

    @classmethod
    def parse(cls, value: Any) -> "AreaType":
        """Accepts 'Urban', 'urban', 'URBAN' or an AreaType. Anything else is RURAL."""
        if isinstance(value, AreaType):
            return value
        if isinstance(value, str) and value.strip().upper() == "URBAN":
            return cls.URBAN
        return cls.RURAL


class FactorSource(Enum):
    """Where a geographical factor came from."""
    EXISTING = "EXISTING"            # Explicit record for the daag
    AUTO_AVERAGE = "AUTO_AVERAGE"    # Mean of circle/lot records
    DEFAULT = "DEFAULT"              # Caller-supplied neutral fallback


# ═══════════════════════════════════════════════════════════════════════════
# ADMINISTRATIVE HIERARCHY
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class District:
    code: str
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class Circle:
    code: str
    name: str
    district_code: str
    is_active: bool = True


@dataclass(frozen=True)
class Mouza:
    """Revenue sub-unit below Circle; the finest level carrying a base price."""
    code: str
    name: str
    district_code: str
    circle_code: str
    base_price_mouza: Optional[float] = None
    is_active: bool = True


@dataclass(frozen=True)
class Lot:
    code: str
    name: str
    district_code: str
    circle_code: str
    mouza_code: str = ""
    base_price_increase_lot: float = 0.0  # percent
    is_active: bool = True


@dataclass(frozen=True)
class Village:
    code: str
    name: str
    district_code: str
    circle_code: str
    mouza_code: str
    lot_code: str
    area_type: AreaType = AreaType.RURAL
    land_category: Optional[str] = None  # category name, matched case-insensitively
    is_active: bool = True


@dataclass(frozen=True)
class LandCategory:
    id: str
    name: str
    base_price_mouza_increase: float = 0.0  # percent
    is_active: bool = True


# ═══════════════════════════════════════════════════════════════════════════
# FACTORS AND PARAMETERS
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class GeographicalFactor:
    """Multiplicative location-quality adjustment, typically near 1.0."""
    district_code: str
    circle_code: str
    lot_code: str
    factor: float
    daag_number: Optional[str] = None
    is_active: bool = True


@dataclass(frozen=True)
class ParameterBand:
    """
    One distance band of a location parameter.

    Bands of the same category never overlap; the category is the unit of
    mutual exclusivity when selecting.
    """
    code: str
    category: str
    label: str
    min_range_in_meters: float = 0.0
    max_range_in_meters: float = 0.0
    weight_percent: float = 0.0
    area_type: Optional[AreaType] = None
    parameter_code: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class Parameter:
    """A location characteristic category with its ordered bands."""
    code: str
    name: str
    bands: Tuple[ParameterBand, ...] = ()
    is_active: bool = True


# ═══════════════════════════════════════════════════════════════════════════
# AREA
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class AreaDetails:
    """Plot area in traditional units. 1 Bigha = 5 Katha = 100 Lessa."""
    bigha: float = 0.0
    katha: float = 0.0
    lessa: float = 0.0

    @property
    def total_lessa(self) -> float:
        return normalize(self.bigha, self.katha, self.lessa)

    @classmethod
    def from_lessa(cls, total_lessa: float) -> "AreaDetails":
        return cls(lessa=total_lessa)

    @classmethod
    def from_text(cls, bigha: Any = "", katha: Any = "", lessa: Any = "") -> "AreaDetails":
        """Build from raw form text; unparsable or negative fields become 0."""
        return cls(bigha=to_quantity(bigha), katha=to_quantity(katha), lessa=to_quantity(lessa))

    def to_dict(self) -> Dict[str, float]:
        return {"bigha": self.bigha, "katha": self.katha, "lessa": self.lessa}


# ═══════════════════════════════════════════════════════════════════════════
# LAND USE (tagged variant)
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class CurrentLandUse:
    """No land-use change requested: the current category drives the increase."""
    category_id: str

    land_use_change = False

    @property
    def effective_category_id(self) -> str:
        return self.category_id

    @property
    def current_category_id(self) -> str:
        return self.category_id


@dataclass(frozen=True)
class ProposedLandUse:
    """A land-use change is requested: the proposed category drives the increase."""
    current_category_id: str
    proposed_category_id: str

    land_use_change = True

    @property
    def effective_category_id(self) -> str:
        return self.proposed_category_id


LandUse = Union[CurrentLandUse, ProposedLandUse]


def land_use_from_form(current_land_use: str, land_use_change: bool,
                       new_land_use: str = "") -> Optional[LandUse]:
    """
    Build the land-use variant from the flat form fields.

    The branch is chosen by the land_use_change flag alone. Returns None when
    the category the flag points at is empty.
    """
    if land_use_change:
        if not new_land_use:
            return None
        return ProposedLandUse(current_category_id=current_land_use or "",
                               proposed_category_id=new_land_use)
    if not current_land_use:
        return None
    return CurrentLandUse(category_id=current_land_use)


def _land_use_to_dict(land_use: Optional[LandUse]) -> Dict[str, Any]:
    if land_use is None:
        return {"land_use_change": False, "current_land_use": "", "new_land_use": ""}
    return {
        "land_use_change": land_use.land_use_change,
        "current_land_use": land_use.current_category_id,
        "new_land_use": land_use.effective_category_id if land_use.land_use_change else "",
    }


# ═══════════════════════════════════════════════════════════════════════════
# REQUEST
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class LocationAttributes:
    """User-declared flat plot attributes. Some may carry a weight in settings."""
    corner_plot: bool = False
    litigated_plot: bool = False
    has_tenant: bool = False
    on_road: bool = False
    road_width: Optional[float] = None
    distance_from_road: Optional[float] = None
    location_method: str = "manual"  # "manual" | "gis"

    WEIGHTED_FLAGS = ("corner_plot", "litigated_plot", "has_tenant")

    def active_flags(self) -> List[str]:
        return [name for name in self.WEIGHTED_FLAGS if getattr(self, name)]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ValuationRequest:
    """
    Everything submitted to the engine for one computation.

    band_selections holds (category, band_code) pairs, at most one per
    category, kept sorted so equal selections compare equal.
    """
    district_code: str
    circle_code: str
    mouza_code: str
    lot_code: str
    land_use: Optional[LandUse]
    area_type: AreaType = AreaType.RURAL
    area: AreaDetails = field(default_factory=AreaDetails)
    village_code: Optional[str] = None
    daag_number: Optional[str] = None
    band_selections: Tuple[Tuple[str, str], ...] = ()
    location: LocationAttributes = field(default_factory=LocationAttributes)

    def __post_init__(self):
        categories = [category for category, _ in self.band_selections]
        if len(categories) != len(set(categories)):
            raise ValueError("At most one band may be selected per category")
        object.__setattr__(self, "band_selections", tuple(sorted(self.band_selections)))

    @property
    def total_lessa(self) -> float:
        return self.area.total_lessa

    def per_unit(self) -> "ValuationRequest":
        """Same request evaluated for exactly one lessa."""
        return replace(self, area=AreaDetails.from_lessa(1))

    def selected_band_codes(self) -> Dict[str, str]:
        return dict(self.band_selections)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "district_code": self.district_code,
            "circle_code": self.circle_code,
            "mouza_code": self.mouza_code,
            "lot_code": self.lot_code,
            "village_code": self.village_code,
            "daag_number": self.daag_number,
            **_land_use_to_dict(self.land_use),
            "area_type": self.area_type.value,
            "area": self.area.to_dict(),
            "band_selections": [list(pair) for pair in self.band_selections],
            "location": self.location.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValuationRequest":
        area = data.get("area") or {}
        return cls(
            district_code=data.get("district_code", ""),
            circle_code=data.get("circle_code", ""),
            mouza_code=data.get("mouza_code", ""),
            lot_code=data.get("lot_code", ""),
            village_code=data.get("village_code"),
            daag_number=data.get("daag_number"),
            land_use=land_use_from_form(
                data.get("current_land_use", ""),
                bool(data.get("land_use_change", False)),
                data.get("new_land_use", ""),
            ),
            area_type=AreaType.parse(data.get("area_type")),
            area=AreaDetails(
                bigha=area.get("bigha", 0.0),
                katha=area.get("katha", 0.0),
                lessa=area.get("lessa", 0.0),
            ),
            band_selections=tuple(tuple(pair) for pair in data.get("band_selections", [])),
            location=LocationAttributes(**(data.get("location") or {})),
        )


# ═══════════════════════════════════════════════════════════════════════════
# RESULT
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class ValuationBreakdown:
    """Every intermediate quantity of one computation."""
    mouza_base: float
    lot_increase_percent: float
    land_use_increase_percent: float
    land_use_change: bool
    land_category_id: str
    geographical_factor: float
    factor_source: str
    plot_level_base: int
    band_weight_percent: float
    attribute_weight_percent: float
    adjusted_base: int
    per_unit_value: int
    total_lessa: float
    area_based_total: int
    area_type: str
    area_type_rate: float
    total_value_with_rate: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ValuationResult:
    """Outcome of one successful computation."""
    total_value: int
    per_unit_value: Optional[int]
    breakdown: ValuationBreakdown

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_value": self.total_value,
            "per_unit_value": self.per_unit_value,
            "breakdown": self.breakdown.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValuationResult":
        return cls(
            total_value=data["total_value"],
            per_unit_value=data.get("per_unit_value"),
            breakdown=ValuationBreakdown(**data["breakdown"]),
        )
