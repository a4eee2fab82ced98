"""
Master-data access for the valuation engine.

Includes:
- MasterDataSource interface
- HTTP client (master-data REST service)
- In-memory and CSV snapshot sources
- Cached hierarchy resolver with last-request-wins background lookups
"""

from masterdata.source import MasterDataSource, dedupe_lots
from masterdata.memory import InMemoryMasterData
from masterdata.csv_source import CsvMasterData
from masterdata.client import MasterDataClient, get_master_data_client, normalize_payload
from masterdata.hierarchy import LocationHierarchyResolver, LookupSlot, SlotStatus

__all__ = [
    # Sources
    "MasterDataSource",
    "dedupe_lots",
    "InMemoryMasterData",
    "CsvMasterData",
    "MasterDataClient",
    "get_master_data_client",
    "normalize_payload",
    # Resolver
    "LocationHierarchyResolver",
    "LookupSlot",
    "SlotStatus",
]
