"""
Location Hierarchy Resolver - cached lookups down the administrative hierarchy.

Synchronous lookups are cached per resolver (one form session). Asynchronous
lookups run on a thread pool through named slots; every request to a slot
takes a new ticket and only the newest ticket's response is applied, so a
slow answer for an old parent can never overwrite options for the current one.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from masterdata.source import MasterDataSource, dedupe_lots
from valuation.errors import ResolutionFailure
from valuation.models import (
    Circle, District, GeographicalFactor, LandCategory, Lot, Mouza,
    ParameterBand, Village,
)

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# LOOKUP SLOTS
# ═══════════════════════════════════════════════════════════════════════════
class SlotStatus:
    """Lookup slot lifecycle states."""
    IDLE = "idle"          # Never requested
    LOADING = "loading"    # Newest ticket still in flight
    LOADED = "loaded"      # Newest ticket answered
    FAILED = "failed"      # Newest ticket failed; retry() re-issues it


@dataclass
class LookupSlot:
    """Options for one dropdown-like lookup, with the ticket that produced them."""
    name: str
    status: str = SlotStatus.IDLE
    ticket: int = 0
    applied_ticket: int = 0
    value: List[Any] = field(default_factory=list)
    error: Optional[str] = None
    call: Optional[Tuple[str, tuple]] = None

    @property
    def failed(self) -> bool:
        return self.status == SlotStatus.FAILED

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "status": self.status,
            "ticket": self.ticket,
            "applied_ticket": self.applied_ticket,
            "count": len(self.value),
            "error": self.error,
        }


class LocationHierarchyResolver:
    """
    Cached master-data lookups for one session.

    Usage:
        resolver = LocationHierarchyResolver(source)
        circles = resolver.circles("D01")
        future = resolver.request("mouzas", "mouzas", "D01", "C01")
    """

    def __init__(self, source: MasterDataSource, max_workers: int = 4):
        self.source = source
        self._cache: Dict[Tuple, Any] = {}
        self._lock = threading.RLock()
        self._slots: Dict[str, LookupSlot] = {}
        self._executor: Optional[ThreadPoolExecutor] = None
        self._max_workers = max_workers

    # ─────────────────────────────────────────────────────────────────────
    # Cache
    # ─────────────────────────────────────────────────────────────────────
    def _cached(self, lookup: str, args: tuple, loader: Callable[[], List]) -> List:
        key = (lookup,) + args
        with self._lock:
            if key in self._cache:
                log.debug(f"Cache hit for {lookup}{args}")
                return list(self._cache[key])
        try:
            value = loader()
        except ResolutionFailure:
            raise
        except Exception as e:
            log.error(f"Lookup {lookup}{args} failed: {e}")
            raise ResolutionFailure(lookup, str(e)) from e
        with self._lock:
            self._cache[key] = list(value)
        return list(value)

    def invalidate(self):
        """Drop every cached lookup."""
        with self._lock:
            self._cache.clear()

    # ─────────────────────────────────────────────────────────────────────
    # Lookups (empty parent → empty list, no call)
    # ─────────────────────────────────────────────────────────────────────
    def districts(self) -> List[District]:
        return self._cached("districts", (), self.source.list_districts)

    def circles(self, district_code: Optional[str]) -> List[Circle]:
        if not district_code:
            return []
        return self._cached("circles", (district_code,),
                            lambda: self.source.list_circles(district_code))

    def mouzas(self, district_code: Optional[str], circle_code: Optional[str]) -> List[Mouza]:
        if not district_code or not circle_code:
            return []
        return self._cached("mouzas", (district_code, circle_code),
                            lambda: self.source.list_mouzas(district_code, circle_code))

    def lots(self, district_code: Optional[str], circle_code: Optional[str],
             mouza_code: Optional[str] = None) -> List[Lot]:
        if not district_code or not circle_code:
            return []
        return self._cached(
            "lots", (district_code, circle_code, mouza_code or ""),
            lambda: dedupe_lots(self.source.list_lots(district_code, circle_code, mouza_code or None)),
        )

    def villages(self, district_code: Optional[str], circle_code: Optional[str],
                 mouza_code: Optional[str], lot_code: Optional[str]) -> List[Village]:
        if not (district_code and circle_code and mouza_code and lot_code):
            return []
        return self._cached(
            "villages", (district_code, circle_code, mouza_code, lot_code),
            lambda: self.source.list_villages(district_code, circle_code, mouza_code, lot_code),
        )

    def land_categories(self) -> List[LandCategory]:
        return self._cached("land categories", (), self.source.list_land_categories)

    def geographical_factors(self, district_code: str, circle_code: str,
                             lot_code: str) -> List[GeographicalFactor]:
        if not (district_code and circle_code and lot_code):
            return []
        return self._cached(
            "geographical factors", (district_code, circle_code, lot_code),
            lambda: self.source.list_geographical_factors(district_code, circle_code, lot_code),
        )

    def parameter_bands(self) -> List[ParameterBand]:
        return self._cached("parameter bands", (), self.source.list_parameter_bands)

    # Lets the resolver itself stand in as a cached source for FactorResolver
    list_geographical_factors = geographical_factors

    # ─────────────────────────────────────────────────────────────────────
    # Single records
    # ─────────────────────────────────────────────────────────────────────
    def find_district(self, code: str) -> Optional[District]:
        return next((d for d in self.districts() if d.code == code), None)

    def find_circle(self, district_code: str, code: str) -> Optional[Circle]:
        return next((c for c in self.circles(district_code) if c.code == code), None)

    def find_mouza(self, district_code: str, circle_code: str, code: str) -> Optional[Mouza]:
        return next((m for m in self.mouzas(district_code, circle_code) if m.code == code), None)

    def find_lot(self, district_code: str, circle_code: str, code: str,
                 mouza_code: Optional[str] = None) -> Optional[Lot]:
        return next((l for l in self.lots(district_code, circle_code, mouza_code)
                     if l.code == code), None)

    def find_village(self, district_code: str, circle_code: str, mouza_code: str,
                     lot_code: str, code: str) -> Optional[Village]:
        return next((v for v in self.villages(district_code, circle_code, mouza_code, lot_code)
                     if v.code == code), None)

    def find_land_category(self, category_id: str) -> Optional[LandCategory]:
        return next((lc for lc in self.land_categories() if lc.id == category_id), None)

    def default_land_category(self, village: Village) -> Optional[LandCategory]:
        """Catalog entry whose name matches the village's land category, ignoring case."""
        if not village.land_category:
            return None
        wanted = village.land_category.strip().lower()
        for category in self.land_categories():
            if category.name.strip().lower() == wanted:
                return category
        return None

    # ─────────────────────────────────────────────────────────────────────
    # Asynchronous slots (last request wins)
    # ─────────────────────────────────────────────────────────────────────
    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self._max_workers,
                                                thread_name_prefix="masterdata")
        return self._executor

    def slot(self, name: str) -> LookupSlot:
        with self._lock:
            return self._slots.setdefault(name, LookupSlot(name))

    def request(self, slot_name: str, lookup: str, *args) -> Future:
        """
        Run a lookup in the background and apply it to a slot.

        Args:
            slot_name: Slot to fill, e.g. "circles".
            lookup: Name of a lookup method on this resolver, e.g. "circles".
            *args: Arguments for the lookup.

        Returns:
            Future with the lookup result. When it completes, the slot has been
            updated (or left alone if a newer request superseded this one).
        """
        with self._lock:
            slot = self.slot(slot_name)
            slot.ticket += 1
            ticket = slot.ticket
            slot.status = SlotStatus.LOADING
            slot.error = None
            slot.call = (lookup, args)
        return self._get_executor().submit(self._run, slot_name, ticket, lookup, args)

    def retry(self, slot_name: str) -> Future:
        """Re-issue the slot's last lookup."""
        slot = self.slot(slot_name)
        if slot.call is None:
            raise ValueError(f"Slot '{slot_name}' has never been requested")
        lookup, args = slot.call
        log.info(f"Retrying {slot_name}")
        return self.request(slot_name, lookup, *args)

    def _run(self, slot_name: str, ticket: int, lookup: str, args: tuple):
        try:
            value = getattr(self, lookup)(*args)
        except ResolutionFailure as e:
            self._apply(slot_name, ticket, error=e)
            raise
        self._apply(slot_name, ticket, value=value)
        return value

    def _apply(self, slot_name: str, ticket: int, value: Optional[List] = None,
               error: Optional[ResolutionFailure] = None):
        with self._lock:
            slot = self._slots[slot_name]
            if ticket != slot.ticket:
                log.warning(f"Dropping stale {slot_name} response (ticket {ticket}, "
                            f"current {slot.ticket})")
                return
            slot.applied_ticket = ticket
            if error is not None:
                slot.status = SlotStatus.FAILED
                slot.error = str(error)
                slot.value = []
            else:
                slot.status = SlotStatus.LOADED
                slot.value = list(value or [])

    def reset_slot(self, slot_name: str):
        """Forget a slot's options; responses still in flight are discarded."""
        with self._lock:
            slot = self.slot(slot_name)
            slot.ticket += 1
            slot.status = SlotStatus.IDLE
            slot.value = []
            slot.error = None

    def shutdown(self, wait: bool = True):
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
