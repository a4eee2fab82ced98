"""
Master-data source interface.

The valuation engine never talks to storage directly; it asks a
MasterDataSource for read-only snapshots of the administrative hierarchy,
land categories, geographical factors and the parameter band catalog.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from valuation.models import (
    Circle, District, GeographicalFactor, LandCategory, Lot, Mouza,
    ParameterBand, Village,
)


class MasterDataSource(ABC):
    """Abstract base class for master-data providers."""

    @abstractmethod
    def list_districts(self) -> List[District]:
        pass

    @abstractmethod
    def list_circles(self, district_code: str) -> List[Circle]:
        pass

    @abstractmethod
    def list_mouzas(self, district_code: str, circle_code: str) -> List[Mouza]:
        pass

    @abstractmethod
    def list_lots(self, district_code: str, circle_code: str,
                  mouza_code: Optional[str] = None) -> List[Lot]:
        """Lots of a circle, optionally narrowed to one mouza."""
        pass

    @abstractmethod
    def list_villages(self, district_code: str, circle_code: str,
                      mouza_code: str, lot_code: str) -> List[Village]:
        pass

    @abstractmethod
    def list_land_categories(self) -> List[LandCategory]:
        pass

    @abstractmethod
    def list_geographical_factors(self, district_code: str, circle_code: str,
                                  lot_code: str) -> List[GeographicalFactor]:
        pass

    @abstractmethod
    def list_parameter_bands(self) -> List[ParameterBand]:
        pass


def dedupe_lots(lots: List[Lot]) -> List[Lot]:
    """Drop lots without code/name and repeated (code, name) pairs, keeping first seen."""
    seen = set()
    unique = []
    for lot in lots:
        if not lot.code or not lot.name:
            continue
        key = (lot.code, lot.name)
        if key in seen:
            continue
        seen.add(key)
        unique.append(lot)
    return unique
