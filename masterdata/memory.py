"""
In-memory master data, for fixtures, tests and offline use.
"""

import logging
from typing import Iterable, List, Optional

from masterdata.source import MasterDataSource, dedupe_lots
from valuation.models import (
    Circle, District, GeographicalFactor, LandCategory, Lot, Mouza,
    ParameterBand, Village,
)

log = logging.getLogger(__name__)


class InMemoryMasterData(MasterDataSource):
    """
    MasterDataSource over plain lists.

    Every list_* call is counted in `calls` so callers can check caching.
    """

    def __init__(self,
                 districts: Iterable[District] = (),
                 circles: Iterable[Circle] = (),
                 mouzas: Iterable[Mouza] = (),
                 lots: Iterable[Lot] = (),
                 villages: Iterable[Village] = (),
                 land_categories: Iterable[LandCategory] = (),
                 geographical_factors: Iterable[GeographicalFactor] = (),
                 parameter_bands: Iterable[ParameterBand] = ()):
        self.districts = list(districts)
        self.circles = list(circles)
        self.mouzas = list(mouzas)
        self.lots = list(lots)
        self.villages = list(villages)
        self.land_categories = list(land_categories)
        self.geographical_factors = list(geographical_factors)
        self.parameter_bands = list(parameter_bands)
        self.calls: List[str] = []

    def list_districts(self) -> List[District]:
        self.calls.append("districts")
        return list(self.districts)

    def list_circles(self, district_code: str) -> List[Circle]:
        self.calls.append("circles")
        return [c for c in self.circles if c.district_code == district_code]

    def list_mouzas(self, district_code: str, circle_code: str) -> List[Mouza]:
        self.calls.append("mouzas")
        return [m for m in self.mouzas
                if m.district_code == district_code and m.circle_code == circle_code]

    def list_lots(self, district_code: str, circle_code: str,
                  mouza_code: Optional[str] = None) -> List[Lot]:
        self.calls.append("lots")
        lots = [l for l in self.lots
                if l.district_code == district_code and l.circle_code == circle_code
                and (not mouza_code or not l.mouza_code or l.mouza_code == mouza_code)]
        return dedupe_lots(lots)

    def list_villages(self, district_code: str, circle_code: str,
                      mouza_code: str, lot_code: str) -> List[Village]:
        self.calls.append("villages")
        return [v for v in self.villages
                if (v.district_code, v.circle_code, v.mouza_code, v.lot_code)
                == (district_code, circle_code, mouza_code, lot_code)]

    def list_land_categories(self) -> List[LandCategory]:
        self.calls.append("land_categories")
        return list(self.land_categories)

    def list_geographical_factors(self, district_code: str, circle_code: str,
                                  lot_code: str) -> List[GeographicalFactor]:
        self.calls.append("geographical_factors")
        return [g for g in self.geographical_factors
                if (g.district_code, g.circle_code, g.lot_code)
                == (district_code, circle_code, lot_code)]

    def list_parameter_bands(self) -> List[ParameterBand]:
        self.calls.append("parameter_bands")
        return list(self.parameter_bands)
