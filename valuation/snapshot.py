"""
Form snapshots - a serializable draft of the valuation form.

A snapshot stores the raw form fields (including area text exactly as typed)
so an interrupted session can be resumed. Snapshots carry a format version;
older versions are migrated on load, newer ones are rejected.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from valuation.errors import SnapshotVersionError
from valuation.models import (
    AreaDetails, AreaType, LocationAttributes, ValuationRequest, land_use_from_form,
)
from valuation.selection import HierarchySelection

log = logging.getLogger(__name__)

SNAPSHOT_VERSION = 2


def _migrate_v1(data: Dict[str, Any]) -> Dict[str, Any]:
    """v1 kept hierarchy codes flat and the area as a single lessa number."""
    migrated = dict(data)
    migrated["selection"] = {
        level: data.get(f"{level}_code")
        for level in ("district", "circle", "mouza", "lot", "village")
    }
    lessa = data.get("area_lessa", "")
    migrated["area_text"] = {"bigha": "", "katha": "", "lessa": "" if lessa in (None, "") else str(lessa)}
    migrated.setdefault("band_selections", [])
    migrated["version"] = 2
    return migrated


MIGRATIONS = {
    1: _migrate_v1,
}


@dataclass
class FormSnapshot:
    """Draft state of the valuation form."""
    selection: Dict[str, Optional[str]] = field(default_factory=dict)
    daag_number: str = ""
    current_land_use: str = ""
    land_use_change: bool = False
    new_land_use: str = ""
    area_type: str = AreaType.RURAL.value
    area_text: Dict[str, str] = field(default_factory=lambda: {"bigha": "", "katha": "", "lessa": ""})
    band_selections: Tuple[Tuple[str, str], ...] = ()
    location: Dict[str, Any] = field(default_factory=dict)
    saved_at: Optional[str] = None
    version: int = SNAPSHOT_VERSION

    @property
    def hierarchy(self) -> HierarchySelection:
        return HierarchySelection.from_dict(self.selection)

    def to_request(self) -> ValuationRequest:
        """Build the request the form would submit. Codes may still be empty."""
        hierarchy = self.hierarchy
        return ValuationRequest(
            district_code=hierarchy.code("district") or "",
            circle_code=hierarchy.code("circle") or "",
            mouza_code=hierarchy.code("mouza") or "",
            lot_code=hierarchy.code("lot") or "",
            village_code=hierarchy.code("village"),
            daag_number=self.daag_number or None,
            land_use=land_use_from_form(self.current_land_use, self.land_use_change,
                                        self.new_land_use),
            area_type=AreaType.parse(self.area_type),
            area=AreaDetails.from_text(**self.area_text),
            band_selections=tuple(tuple(pair) for pair in self.band_selections),
            location=LocationAttributes(**self.location),
        )

    @classmethod
    def from_request(cls, request: ValuationRequest) -> "FormSnapshot":
        data = request.to_dict()
        return cls(
            selection={
                "district": request.district_code or None,
                "circle": request.circle_code or None,
                "mouza": request.mouza_code or None,
                "lot": request.lot_code or None,
                "village": request.village_code or None,
            },
            daag_number=request.daag_number or "",
            current_land_use=data["current_land_use"],
            land_use_change=data["land_use_change"],
            new_land_use=data["new_land_use"],
            area_type=request.area_type.value,
            area_text={k: str(v) for k, v in request.area.to_dict().items()},
            band_selections=request.band_selections,
            location=request.location.to_dict(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "saved_at": self.saved_at,
            "selection": dict(self.selection),
            "daag_number": self.daag_number,
            "current_land_use": self.current_land_use,
            "land_use_change": self.land_use_change,
            "new_land_use": self.new_land_use,
            "area_type": self.area_type,
            "area_text": dict(self.area_text),
            "band_selections": [list(pair) for pair in self.band_selections],
            "location": dict(self.location),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormSnapshot":
        """
        Load any known snapshot version.

        Raises:
            SnapshotVersionError: the snapshot is newer than this code understands.
        """
        version = int(data.get("version", 1))
        if version > SNAPSHOT_VERSION:
            raise SnapshotVersionError(
                f"Snapshot version {version} is newer than supported version {SNAPSHOT_VERSION}"
            )
        while version < SNAPSHOT_VERSION:
            log.info(f"Migrating form snapshot from version {version}")
            data = MIGRATIONS[version](data)
            version = data["version"]

        return cls(
            selection=dict(data.get("selection") or {}),
            daag_number=data.get("daag_number", ""),
            current_land_use=data.get("current_land_use", ""),
            land_use_change=bool(data.get("land_use_change", False)),
            new_land_use=data.get("new_land_use", ""),
            area_type=data.get("area_type", AreaType.RURAL.value),
            area_text=dict(data.get("area_text") or {}),
            band_selections=tuple(tuple(pair) for pair in data.get("band_selections", [])),
            location=dict(data.get("location") or {}),
            saved_at=data.get("saved_at"),
            version=SNAPSHOT_VERSION,
        )

    def save(self, path: str):
        """Save the snapshot to a JSON file."""
        self.saved_at = datetime.now().isoformat()
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        log.info(f"Saved form snapshot to {path}")

    @classmethod
    def load(cls, path: str) -> Optional["FormSnapshot"]:
        """Load a snapshot. Returns None if the file does not exist."""
        if not Path(path).exists():
            return None
        with open(path, "r") as f:
            return cls.from_dict(json.load(f))
