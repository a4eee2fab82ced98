"""
Engine Settings

Every tunable of the valuation pipeline lives here, with an explicit meaning.
Settings round-trip through JSON and can be seeded from environment variables.
"""

import json
import os
from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from typing import Dict, Optional
import logging

log = logging.getLogger(__name__)


class BandCombination(Enum):
    """How cumulative location weights are applied to the plot-level base."""
    ADDITIVE = "additive"   # base × (1 + Σw/100)
    COMPOUND = "compound"   # base × Π(1 + w_i/100)


DEFAULT_AREA_TYPE_RATES = {
    "RURAL": 0.02,
    "URBAN": 0.01,
}

DEFAULT_ATTRIBUTE_WEIGHTS = {
    "corner_plot": 0.0,
    "litigated_plot": 0.0,
    "has_tenant": 0.0,
}


@dataclass
class EngineSettings:
    """
    All configurable settings for the valuation engine.

    IMPORTANT: Every value has an explicit meaning. No magic numbers.
    """

    # History
    history_capacity: int = 10
    """How many recent calculations the history store keeps. Oldest is evicted first."""

    history_path: Optional[str] = None
    """SQLite file for persisted history. None keeps history in memory only."""

    # Formula
    area_type_rates: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_AREA_TYPE_RATES))
    """Market-rate surcharge per area type, as a fraction (0.02 = 2%)."""

    band_combination: BandCombination = BandCombination.ADDITIVE
    """How selected band weights and attribute weights combine with the plot-level base."""

    attribute_weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_ATTRIBUTE_WEIGHTS))
    """Percent weight added when a flat plot attribute (corner plot, litigated, tenant) is set."""

    apply_geographical_factor: bool = False
    """If True, the mouza base is multiplied by the resolved geographical factor before step 1."""

    default_factor: float = 1.0
    """Neutral factor used when no geographical factor record exists. Must not be 0."""

    # Recompute
    debounce_seconds: float = 0.5
    """Quiet period after the last input change before an automatic per-unit computation runs."""

    # Master data API
    api_base_url: str = "http://localhost:8081/masterData"
    """Base URL of the master-data service."""

    api_token: Optional[str] = None
    """Bearer token sent to the master-data service, if any."""

    request_timeout_seconds: float = 10.0
    """Per-request timeout for master-data lookups."""

    def __post_init__(self):
        if self.default_factor <= 0:
            raise ValueError("default_factor must be positive; 0 would null out the valuation")
        if self.history_capacity < 1:
            raise ValueError("history_capacity must be at least 1")

    def rate_for(self, area_type: str) -> float:
        """Surcharge fraction for an area type name. Unknown names have no surcharge."""
        return self.area_type_rates.get(area_type, 0.0)

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["band_combination"] = self.band_combination.value
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> "EngineSettings":
        data = dict(data)
        if "band_combination" in data:
            data["band_combination"] = BandCombination(data["band_combination"])
        return cls(**data)

    @classmethod
    def from_env(cls, base: Optional["EngineSettings"] = None) -> "EngineSettings":
        """Overlay environment variables on top of base (or defaults)."""
        settings = base or cls()
        settings.api_base_url = os.environ.get("MASTER_DATA_API_BASE_URL", settings.api_base_url)
        settings.api_token = os.environ.get("MASTER_DATA_API_TOKEN", settings.api_token)
        timeout = os.environ.get("MASTER_DATA_TIMEOUT_SECONDS")
        if timeout:
            try:
                settings.request_timeout_seconds = float(timeout)
            except ValueError:
                log.warning(f"Ignoring invalid MASTER_DATA_TIMEOUT_SECONDS={timeout!r}")
        settings.history_path = os.environ.get("VALUATION_HISTORY_PATH", settings.history_path)
        return settings

    def save(self, path: str):
        """Save settings to a JSON file."""
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        log.info(f"Saved engine settings to {path}")

    @classmethod
    def load(cls, path: str) -> "EngineSettings":
        """Load settings from a JSON file. A missing file yields defaults."""
        if not Path(path).exists():
            return cls()
        with open(path, "r") as f:
            return cls.from_dict(json.load(f))
