"""
Geographical factor resolution for a single plot (daag).

An explicit record for the exact daag wins. Without one, the factor is derived
as the mean of every record at the parent circle/lot scope. With no records at
all there is nothing to resolve and the caller has to pick a default.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

from valuation.errors import NoFactorAvailable
from valuation.models import FactorSource, GeographicalFactor

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FactorResolution:
    """Resolved factor with its provenance."""
    factor: float
    source: FactorSource
    parents: Tuple[GeographicalFactor, ...] = ()

    def to_dict(self):
        return {
            "factor": self.factor,
            "source": self.source.value,
            "parents": [
                {"circle_code": p.circle_code, "lot_code": p.lot_code,
                 "daag_number": p.daag_number, "factor": p.factor}
                for p in self.parents
            ],
        }


def average_factor(factors: List[float]) -> float:
    """Arithmetic mean. Callers must not pass an empty list."""
    return sum(factors) / len(factors)


class FactorResolver:
    """
    Resolves the geographical factor for a plot.

    Usage:
        resolver = FactorResolver(source)
        resolution = resolver.resolve("D01", "C01", "L01", daag_number="123")
    """

    def __init__(self, source):
        """
        Args:
            source: Anything with list_geographical_factors(district, circle, lot)
                    returning GeographicalFactor records (a MasterDataSource).
        """
        self.source = source

    def _scope_records(self, district_code: str, circle_code: str,
                       lot_code: str) -> List[GeographicalFactor]:
        records = self.source.list_geographical_factors(district_code, circle_code, lot_code)
        return [
            r for r in records
            if r.is_active
            and r.district_code == district_code
            and r.circle_code == circle_code
            and r.lot_code == lot_code
        ]

    def resolve(self, district_code: str, circle_code: str, lot_code: str,
                daag_number: Optional[str] = None) -> FactorResolution:
        """
        Resolve the factor for a daag, or for the lot when no daag is given.

        Raises:
            NoFactorAvailable: no record exists at any scope.
        """
        records = self._scope_records(district_code, circle_code, lot_code)
        daag = (daag_number or "").strip()

        if daag:
            for record in records:
                if (record.daag_number or "").strip() == daag:
                    log.debug(f"Existing factor {record.factor} for daag {daag}")
                    return FactorResolution(factor=record.factor, source=FactorSource.EXISTING)

        if not records:
            raise NoFactorAvailable(district_code, circle_code, lot_code, daag or None)

        factor = average_factor([r.factor for r in records])
        log.debug(f"Derived factor {factor} from {len(records)} records at "
                  f"{district_code}/{circle_code}/{lot_code}")
        return FactorResolution(factor=factor, source=FactorSource.AUTO_AVERAGE,
                                parents=tuple(records))

    def resolve_or_default(self, district_code: str, circle_code: str, lot_code: str,
                           daag_number: Optional[str] = None,
                           default: float = 1.0) -> FactorResolution:
        """Like resolve(), but turns NoFactorAvailable into an explicit default."""
        if default <= 0:
            raise ValueError("Default factor must be positive")
        try:
            return self.resolve(district_code, circle_code, lot_code, daag_number)
        except NoFactorAvailable as e:
            log.warning(f"{e}; using default factor {default}")
            return FactorResolution(factor=default, source=FactorSource.DEFAULT)
