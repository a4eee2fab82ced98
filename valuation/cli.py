"""
Command line entry point.

    guideline-valuation compute --data snapshot/ --request plot.json [--unit] [--history history.db]
    guideline-valuation compute --api --request plots.json
    guideline-valuation history --history history.db [--restore ID] [--clear]

A request file holds one request object or a list of them (computed as a batch).
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from masterdata.client import MasterDataClient
from masterdata.csv_source import CsvMasterData
from valuation.errors import ValuationError
from valuation.history import CalculationHistoryStore
from valuation.models import ValuationRequest
from valuation.service import ValuationService
from valuation.settings import EngineSettings

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="guideline-valuation",
                                     description="Guideline market valuation of land parcels")
    parser.add_argument("--settings", help="Engine settings JSON file")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    compute = sub.add_parser("compute", help="Compute a valuation")
    source = compute.add_mutually_exclusive_group(required=True)
    source.add_argument("--data", help="Directory of master-data CSV snapshots")
    source.add_argument("--api", action="store_true",
                        help="Use the master-data service from MASTER_DATA_API_BASE_URL")
    compute.add_argument("--request", required=True, help="Request JSON file")
    compute.add_argument("--unit", action="store_true", help="Compute the per-lessa value only")
    compute.add_argument("--history", help="SQLite file to record the calculation in")

    history = sub.add_parser("history", help="Show recorded calculations")
    history.add_argument("--history", help="SQLite history file (default VALUATION_HISTORY_PATH)")
    history.add_argument("--restore", metavar="ID", help="Print one stored entry")
    history.add_argument("--clear", action="store_true", help="Delete all stored entries")
    return parser


def _load_settings(args) -> EngineSettings:
    base = EngineSettings.load(args.settings) if args.settings else None
    settings = EngineSettings.from_env(base)
    if getattr(args, "history", None):
        settings.history_path = args.history
    return settings


def _print(data):
    print(json.dumps(data, indent=2))


def run_compute(args, settings: EngineSettings) -> int:
    if args.data:
        source = CsvMasterData(args.data)
    else:
        source = MasterDataClient.from_settings(settings)
    service = ValuationService(source, settings)

    with open(args.request, "r") as f:
        payload = json.load(f)

    if isinstance(payload, list):
        requests = [ValuationRequest.from_dict(item) for item in payload]
        if args.unit:
            requests = [r.per_unit() for r in requests]
        items = service.compute_batch(requests)
        _print([item.to_dict() for item in items])
        return 0 if all(item.ok for item in items) else 1

    request = ValuationRequest.from_dict(payload)
    problems = service.validate_request(request, require_area=not args.unit)
    if problems:
        _print({"error": "invalid_request", "problems": problems})
        return 2

    try:
        if args.unit:
            result = service.compute_unit_valuation(request)
        else:
            result = service.compute_valuation(request)
    except ValuationError as e:
        log.error(f"Valuation failed: {e}")
        _print(e.to_dict())
        return 1

    output = result.to_dict()
    if settings.history_path and not args.unit:
        entry = service.record_history(request, result)
        output["history_id"] = entry.id
    _print(output)
    return 0


def run_history(args, settings: EngineSettings) -> int:
    if not settings.history_path:
        print("No history file given (--history or VALUATION_HISTORY_PATH)", file=sys.stderr)
        return 2
    store = CalculationHistoryStore(capacity=settings.history_capacity,
                                    db_path=settings.history_path)
    try:
        if args.clear:
            store.clear()
            return 0
        if args.restore:
            try:
                _print(store.get(args.restore).to_dict())
            except ValuationError as e:
                _print(e.to_dict())
                return 1
            return 0
        for entry in store.list():
            print(f"{entry.id}  {entry.timestamp}  {entry.description}  "
                  f"{entry.result.total_value}")
        return 0
    finally:
        store.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )
    settings = _load_settings(args)

    if args.command == "compute":
        return run_compute(args, settings)
    return run_history(args, settings)


if __name__ == "__main__":
    sys.exit(main())
