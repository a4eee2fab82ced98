"""
Error types raised by the valuation pipeline.

Every failure surfaced to a caller is a ValuationError subclass and can be
flattened with to_dict() into a single structured error payload.
"""

from typing import Any, Dict, Optional


class ValuationError(Exception):
    """Base class for all valuation failures."""

    kind = "valuation_error"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": str(self)}


class MissingRequiredField(ValuationError):
    """A mandatory hierarchy code, land-use selection or resolved input is absent."""

    kind = "missing_required_field"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Required field '{field}' is missing")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        return data


class ResolutionFailure(ValuationError):
    """
    An upstream master-data lookup failed or came back empty when data was expected.

    Recoverable: the caller may retry the same lookup.
    """

    kind = "resolution_failure"

    def __init__(self, lookup: str, cause: str):
        self.lookup = lookup
        self.cause = cause
        super().__init__(f"Could not resolve {lookup}: {cause}")

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["lookup"] = self.lookup
        data["cause"] = self.cause
        return data


class NoFactorAvailable(ValuationError):
    """No geographical factor record exists at the daag or circle/lot scope."""

    kind = "no_factor_available"

    def __init__(self, district_code: str, circle_code: str, lot_code: str,
                 daag_number: Optional[str] = None):
        self.district_code = district_code
        self.circle_code = circle_code
        self.lot_code = lot_code
        self.daag_number = daag_number
        scope = f"{district_code}/{circle_code}/{lot_code}"
        if daag_number:
            scope += f" daag {daag_number}"
        super().__init__(f"No geographical factor recorded for {scope}")


class HistoryEntryNotFound(ValuationError, KeyError):
    """Requested history entry id is not held by the store."""

    kind = "history_entry_not_found"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        ValuationError.__init__(self, f"No calculation history entry with id '{entry_id}'")

    def __str__(self) -> str:
        return self.args[0]


class SnapshotVersionError(ValuationError):
    """A saved form snapshot was written by a newer, unknown format version."""

    kind = "snapshot_version_error"
