"""
CSV snapshot master data.

A snapshot directory holds one CSV per record type, with snake_case columns
named after the model fields:

    districts.csv              code, name[, is_active]
    circles.csv                code, name, district_code
    mouzas.csv                 code, name, district_code, circle_code, base_price_mouza
    lots.csv                   code, name, district_code, circle_code, mouza_code, base_price_increase_lot
    villages.csv               code, name, district_code, circle_code, mouza_code, lot_code, area_type, land_category
    land_categories.csv        id, name, base_price_mouza_increase
    geographical_factors.csv   district_code, circle_code, lot_code, daag_number, factor
    parameter_bands.csv        code, category, label, min_range_in_meters, max_range_in_meters,
                               weight_percent, area_type, parameter_code

Missing files read as empty tables.
"""

import logging
import math
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from masterdata.memory import InMemoryMasterData
from valuation.models import (
    AreaType, Circle, District, GeographicalFactor, LandCategory, Lot, Mouza,
    ParameterBand, Village,
)

log = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "y", "t"}


def _read(directory: Path, name: str) -> pd.DataFrame:
    path = directory / f"{name}.csv"
    if not path.exists():
        log.warning(f"No {path.name} in {directory}; treating as empty")
        return pd.DataFrame()
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = [c.strip() for c in df.columns]
    return df


def _records(df: pd.DataFrame) -> List[Dict[str, str]]:
    return [{k: (v.strip() if isinstance(v, str) else v) for k, v in row.items()}
            for row in df.to_dict(orient="records")]


def _float(value: Optional[str], default: Optional[float] = 0.0) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        number = float(value)
    except ValueError:
        return default
    return number if math.isfinite(number) else default


def _bool(value: Optional[str]) -> bool:
    if value is None or value == "":
        return True
    return value.lower() in TRUE_VALUES


class CsvMasterData(InMemoryMasterData):
    """
    Master data loaded once from a directory of CSV files.

    Usage:
        source = CsvMasterData("data/snapshot")
        mouzas = source.list_mouzas("D01", "C01")
    """

    def __init__(self, directory: str):
        self.directory = Path(directory)
        if not self.directory.is_dir():
            raise FileNotFoundError(f"Master-data snapshot directory not found: {directory}")

        districts = [
            District(code=r["code"], name=r.get("name", ""), is_active=_bool(r.get("is_active")))
            for r in _records(_read(self.directory, "districts"))
        ]
        circles = [
            Circle(code=r["code"], name=r.get("name", ""), district_code=r["district_code"],
                   is_active=_bool(r.get("is_active")))
            for r in _records(_read(self.directory, "circles"))
        ]
        mouzas = [
            Mouza(code=r["code"], name=r.get("name", ""), district_code=r["district_code"],
                  circle_code=r["circle_code"],
                  base_price_mouza=_float(r.get("base_price_mouza"), default=None),
                  is_active=_bool(r.get("is_active")))
            for r in _records(_read(self.directory, "mouzas"))
        ]
        lots = [
            Lot(code=r["code"], name=r.get("name", ""), district_code=r["district_code"],
                circle_code=r["circle_code"], mouza_code=r.get("mouza_code", ""),
                base_price_increase_lot=_float(r.get("base_price_increase_lot")),
                is_active=_bool(r.get("is_active")))
            for r in _records(_read(self.directory, "lots"))
        ]
        villages = [
            Village(code=r["code"], name=r.get("name", ""), district_code=r["district_code"],
                    circle_code=r["circle_code"], mouza_code=r["mouza_code"], lot_code=r["lot_code"],
                    area_type=AreaType.parse(r.get("area_type")),
                    land_category=r.get("land_category") or None,
                    is_active=_bool(r.get("is_active")))
            for r in _records(_read(self.directory, "villages"))
        ]
        land_categories = [
            LandCategory(id=r["id"], name=r.get("name", ""),
                         base_price_mouza_increase=_float(r.get("base_price_mouza_increase")),
                         is_active=_bool(r.get("is_active")))
            for r in _records(_read(self.directory, "land_categories"))
        ]
        factors = [
            GeographicalFactor(district_code=r["district_code"], circle_code=r["circle_code"],
                               lot_code=r["lot_code"], factor=float(r["factor"]),
                               daag_number=r.get("daag_number") or None,
                               is_active=_bool(r.get("is_active")))
            for r in _records(_read(self.directory, "geographical_factors"))
            if _float(r.get("factor"), default=None) is not None
        ]
        bands = [
            ParameterBand(code=r["code"], category=r["category"], label=r.get("label", r["code"]),
                          min_range_in_meters=_float(r.get("min_range_in_meters")),
                          max_range_in_meters=_float(r.get("max_range_in_meters")),
                          weight_percent=_float(r.get("weight_percent")),
                          area_type=AreaType.parse(r["area_type"]) if r.get("area_type") else None,
                          parameter_code=r.get("parameter_code", ""),
                          is_active=_bool(r.get("is_active")))
            for r in _records(_read(self.directory, "parameter_bands"))
        ]

        super().__init__(districts=districts, circles=circles, mouzas=mouzas, lots=lots,
                         villages=villages, land_categories=land_categories,
                         geographical_factors=factors, parameter_bands=bands)
        log.info(f"Loaded master-data snapshot from {self.directory}: "
                 f"{len(districts)} districts, {len(mouzas)} mouzas, {len(lots)} lots, "
                 f"{len(bands)} bands")
