"""
Band Selection - maps declared location characteristics to weighted bands.

Bands are chosen explicitly by the user from a category-filtered list sorted by
distance; nothing here auto-picks a band from a measured distance. Within one
category at most one band is selected, and weights add up across categories.
"""

import logging
from typing import Dict, Iterable, List, Optional

from valuation.models import AreaType, ParameterBand

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# STANDARD CATEGORIES
# ═══════════════════════════════════════════════════════════════════════════
MAIN_ROAD = "main_road"
METAL_ROAD = "metal_road"
MAIN_MARKET = "main_market"
APPROACH_ROAD_FIRST = "approach_road_1st_band"
APPROACH_ROAD_SECOND = "approach_road_2nd_band"

STANDARD_CATEGORIES = {
    MAIN_ROAD: "Whether on Main Road",
    METAL_ROAD: "Whether on Metal Road",
    MAIN_MARKET: "Distance from Main Market",
    APPROACH_ROAD_FIRST: "Width of Approach Road (1st band)",
    APPROACH_ROAD_SECOND: "Width of Approach Road (2nd band)",
}


class BandSelection:
    """
    At most one selected band per category.

    Selecting a band in a category replaces whatever was selected there;
    selecting None clears the category.
    """

    def __init__(self):
        self._selected: Dict[str, ParameterBand] = {}

    def select(self, category: str, band: Optional[ParameterBand]):
        if band is None:
            self._selected.pop(category, None)
            return
        if band.category != category:
            raise ValueError(f"Band {band.code} belongs to '{band.category}', not '{category}'")
        self._selected[category] = band

    def clear(self):
        self._selected.clear()

    def get(self, category: str) -> Optional[ParameterBand]:
        return self._selected.get(category)

    @property
    def bands(self) -> List[ParameterBand]:
        return [self._selected[c] for c in sorted(self._selected)]

    @property
    def total_weight_percent(self) -> float:
        return sum(b.weight_percent for b in self._selected.values())

    def as_pairs(self):
        """(category, band_code) pairs suitable for a ValuationRequest."""
        return tuple((c, self._selected[c].code) for c in sorted(self._selected))

    def __len__(self) -> int:
        return len(self._selected)


class BandSelector:
    """
    Category-filtered, ordered view over a parameter band catalog.

    Usage:
        selector = BandSelector(catalog)
        options = selector.bands_for(MAIN_ROAD, AreaType.RURAL)
        band = selector.select_band(MAIN_ROAD, options[0].code)
    """

    def __init__(self, catalog: Iterable[ParameterBand]):
        self.catalog = [b for b in catalog if b.is_active]

    def categories(self) -> List[str]:
        return sorted({b.category for b in self.catalog})

    def bands_for(self, category: str, area_type: Optional[AreaType] = None) -> List[ParameterBand]:
        """Bands of one category, ascending by min_range_in_meters."""
        bands = [
            b for b in self.catalog
            if b.category == category
            and (area_type is None or b.area_type is None or b.area_type == area_type)
        ]
        return sorted(bands, key=lambda b: (b.min_range_in_meters, b.max_range_in_meters))

    def select_band(self, category: str, band_code: Optional[str],
                    area_type: Optional[AreaType] = None) -> Optional[ParameterBand]:
        """Return the chosen band of a category, or None when nothing (valid) is chosen."""
        if not band_code:
            return None
        for band in self.bands_for(category, area_type):
            if band.code == band_code:
                return band
        log.warning(f"Band '{band_code}' is not offered in category '{category}'")
        return None

    def selection_from_pairs(self, pairs, area_type: Optional[AreaType] = None) -> BandSelection:
        """
        Rebuild a BandSelection from (category, band_code) pairs.

        Raises:
            KeyError: a pair names a band the catalog does not offer.
        """
        selection = BandSelection()
        for category, band_code in pairs:
            band = self.select_band(category, band_code, area_type)
            if band is None:
                raise KeyError(f"{category}:{band_code}")
            selection.select(category, band)
        return selection

    def cumulative_weight(self, pairs, area_type: Optional[AreaType] = None) -> float:
        return self.selection_from_pairs(pairs, area_type).total_weight_percent
