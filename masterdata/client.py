"""
Master Data Client - HTTP access to the master-data service.

Features:
- Retry with exponential backoff on connection errors and timeouts
- Payloads accepted as {"data": [...]} or a bare list
- Optional bearer token
- Every failure surfaces as ResolutionFailure naming the lookup
"""

import logging
import math
from typing import Any, Dict, List, Optional

import requests
from tenacity import (
    retry, retry_if_exception_type, stop_after_attempt, wait_exponential,
)

from masterdata.source import MasterDataSource, dedupe_lots
from valuation.bands import (
    APPROACH_ROAD_FIRST, APPROACH_ROAD_SECOND, MAIN_MARKET, MAIN_ROAD, METAL_ROAD,
)
from valuation.errors import ResolutionFailure
from valuation.models import (
    AreaType, Circle, District, GeographicalFactor, LandCategory, Lot, Mouza,
    ParameterBand, Village,
)
from valuation.settings import EngineSettings

log = logging.getLogger(__name__)


def normalize_payload(payload: Any) -> List[Dict]:
    """Return the record list from {"data": [...]} or a bare list; anything else is empty."""
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return payload["data"]
    if isinstance(payload, list):
        return payload
    return []


def _number(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _text(record: Dict, *keys: str, default: str = "") -> str:
    for key in keys:
        value = record.get(key)
        if value is not None and value != "":
            return str(value)
    return default


def band_category(parameter_name: str, area_type_id: Any, parameter_code: str) -> List[str]:
    """
    Categories a parameter row belongs to.

    Main-road distance rows split by area type id (1 = main road, 2 = metal
    road). Approach-road width rows feed both approach-road categories since
    two bands may be chosen from them.
    """
    name = (parameter_name or "").lower()
    if "distance from main road" in name:
        return [METAL_ROAD] if str(area_type_id) == "2" else [MAIN_ROAD]
    if "distance from main market" in name:
        return [MAIN_MARKET]
    if "width of approach road" in name:
        return [APPROACH_ROAD_FIRST, APPROACH_ROAD_SECOND]
    return [parameter_code or name]


class MasterDataClient(MasterDataSource):
    """
    MasterDataSource backed by the master-data REST API.

    Usage:
        client = MasterDataClient("http://localhost:8081/masterData")
        districts = client.list_districts()
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/json"})
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> "MasterDataClient":
        return cls(settings.api_base_url, token=settings.api_token,
                   timeout=settings.request_timeout_seconds)

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
        reraise=True,
    )
    def _make_request(self, path: str, params: Optional[Dict] = None) -> Any:
        """GET with retry on transport errors. HTTP error statuses are not retried."""
        response = self.session.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def _fetch(self, lookup: str, path: str, params: Optional[Dict] = None) -> List[Dict]:
        try:
            payload = self._make_request(path, params)
        except requests.RequestException as e:
            log.error(f"Master-data lookup '{lookup}' failed: {e}")
            raise ResolutionFailure(lookup, str(e)) from e
        except ValueError as e:
            log.error(f"Master-data lookup '{lookup}' returned invalid JSON: {e}")
            raise ResolutionFailure(lookup, "invalid response body") from e
        records = normalize_payload(payload)
        log.debug(f"{lookup}: {len(records)} records")
        return records

    # ─────────────────────────────────────────────────────────────────────
    # Hierarchy
    # ─────────────────────────────────────────────────────────────────────
    def list_districts(self) -> List[District]:
        return [
            District(code=_text(d, "districtCode", "code"),
                     name=_text(d, "districtName", "name"),
                     is_active=bool(d.get("active", True)))
            for d in self._fetch("districts", "/getAllDistrictDetails")
        ]

    def list_circles(self, district_code: str) -> List[Circle]:
        return [
            Circle(code=_text(c, "circleCode", "code"),
                   name=_text(c, "circleName", "name"),
                   district_code=_text(c, "districtCode", default=district_code),
                   is_active=bool(c.get("active", True)))
            for c in self._fetch("circles", "/getCircleByDistrict", {"districtCode": district_code})
        ]

    def list_mouzas(self, district_code: str, circle_code: str) -> List[Mouza]:
        records = self._fetch("mouzas", "/getMouzaDetailsByDistrictAndCircle",
                              {"districtCode": district_code, "circleCode": circle_code})
        return [
            Mouza(code=_text(m, "mouzaCode", "code"),
                  name=_text(m, "mouzaName", "name"),
                  district_code=_text(m, "districtCode", default=district_code),
                  circle_code=_text(m, "circleCode", default=circle_code),
                  base_price_mouza=_number(m.get("basePriceMouza"), default=None),
                  is_active=bool(m.get("active", True)))
            for m in records
        ]

    def list_lots(self, district_code: str, circle_code: str,
                  mouza_code: Optional[str] = None) -> List[Lot]:
        params = {"districtCode": district_code, "circleCode": circle_code}
        path = "/getLotByDistrictAndCircle"
        if mouza_code:
            params["mouzaCode"] = mouza_code
            path = "/getLotByDistrictAndCircleAndMouza"
        lots = [
            Lot(code=_text(l, "lotCode", "code"),
                name=_text(l, "lotName", "name"),
                district_code=_text(l, "districtCode", default=district_code),
                circle_code=_text(l, "circleCode", default=circle_code),
                mouza_code=_text(l, "mouzaCode", default=mouza_code or ""),
                base_price_increase_lot=_number(l.get("basePriceIncreaseLot")),
                is_active=bool(l.get("active", True)))
            for l in self._fetch("lots", path, params)
        ]
        return dedupe_lots(lots)

    def list_villages(self, district_code: str, circle_code: str,
                      mouza_code: str, lot_code: str) -> List[Village]:
        # the service spells the mouza parameter "mauzaCode"
        params = {"districtCode": district_code, "circleCode": circle_code,
                  "mauzaCode": mouza_code, "lotCode": lot_code}
        return [
            Village(code=_text(v, "villageCode", "code"),
                    name=_text(v, "villageName", "name"),
                    district_code=_text(v, "districtCode", default=district_code),
                    circle_code=_text(v, "circleCode", default=circle_code),
                    mouza_code=_text(v, "mouzaCode", default=mouza_code),
                    lot_code=_text(v, "lotCode", default=lot_code),
                    area_type=AreaType.parse(v.get("areaType")),
                    land_category=v.get("landCategory") or None,
                    is_active=bool(v.get("active", True)))
            for v in self._fetch("villages", "/getVillageByDistrictAndCircleAndMauzaAndLot", params)
        ]

    # ─────────────────────────────────────────────────────────────────────
    # Categories, factors, parameters
    # ─────────────────────────────────────────────────────────────────────
    def list_land_categories(self) -> List[LandCategory]:
        return [
            LandCategory(id=_text(lc, "landCategoryGenId", "id", "code"),
                         name=_text(lc, "landCategoryName", "name"),
                         base_price_mouza_increase=_number(lc.get("basePriceMouzaIncrease")),
                         is_active=bool(lc.get("active", True)))
            for lc in self._fetch("land categories", "/getAllLandsCategoryDetails")
        ]

    def list_geographical_factors(self, district_code: str, circle_code: str,
                                  lot_code: str) -> List[GeographicalFactor]:
        params = {"districtCode": district_code, "circleCode": circle_code, "lotCode": lot_code}
        factors = []
        for g in self._fetch("geographical factors", "/valuation/geo-factors", params):
            factor = _number(g.get("geographicalFactor", g.get("factor")), default=None)
            if factor is None:
                continue
            factors.append(GeographicalFactor(
                district_code=_text(g, "districtCode", default=district_code),
                circle_code=_text(g, "circleCode", default=circle_code),
                lot_code=_text(g, "lotCode", default=lot_code),
                factor=factor,
                daag_number=_text(g, "daagNumber", "plotNo") or None,
                is_active=bool(g.get("active", True)),
            ))
        return factors

    def list_parameter_bands(self) -> List[ParameterBand]:
        bands = []
        for p in self._fetch("parameters", "/getParameterDetailsAll"):
            code = _text(p, "parameterId", "id")
            parameter_code = _text(p, "parameterCode")
            for category in band_category(_text(p, "parameter", "parameterName"),
                                          p.get("areaTypeId"), parameter_code):
                bands.append(ParameterBand(
                    code=code,
                    category=category,
                    label=_text(p, "minMaxRange", "parameter", default=code),
                    min_range_in_meters=_number(p.get("minRangeInMeters")),
                    max_range_in_meters=_number(p.get("maxRangeInMeters")),
                    weight_percent=_number(p.get("weightage")),
                    parameter_code=parameter_code,
                    is_active=bool(p.get("active", True)),
                ))
        return bands


# Singleton
_client: Optional[MasterDataClient] = None


def get_master_data_client() -> MasterDataClient:
    """Get the singleton client configured from the environment."""
    global _client
    if _client is None:
        _client = MasterDataClient.from_settings(EngineSettings.from_env())
    return _client
