import pytest
import requests
from unittest.mock import MagicMock, patch
from masterdata.client import MasterDataClient, band_category, normalize_payload
from valuation.bands import APPROACH_ROAD_FIRST, APPROACH_ROAD_SECOND, MAIN_ROAD, METAL_ROAD
from valuation.errors import ResolutionFailure
from valuation.models import AreaType


@pytest.fixture
def client():
    with patch('requests.Session') as mock_session:
        client = MasterDataClient("http://md.test/masterData/", token="tkn")
        client.session = mock_session.return_value
        yield client


def respond(client, payload):
    response = MagicMock()
    response.json.return_value = payload
    client.session.get.return_value = response
    return response


def test_normalize_payload():
    """Verify both {"data": [...]} and bare list payloads are accepted."""
    assert normalize_payload({"data": [1, 2]}) == [1, 2]
    assert normalize_payload([3]) == [3]
    assert normalize_payload({"data": None}) == []
    assert normalize_payload("nonsense") == []


def test_token_header():
    session = MagicMock()
    session.headers = {}
    MasterDataClient("http://md.test", token="abc", session=session)
    assert session.headers["Authorization"] == "Bearer abc"


def test_list_districts(client):
    respond(client, {"data": [{"districtCode": "D01", "districtName": "Kamrup", "active": True}]})
    districts = client.list_districts()
    assert districts[0].code == "D01"
    assert districts[0].name == "Kamrup"
    url = client.session.get.call_args[0][0]
    assert url == "http://md.test/masterData/getAllDistrictDetails"


def test_list_mouzas_base_price(client):
    respond(client, [
        {"mouzaCode": "M01", "mouzaName": "Beltola", "basePriceMouza": "100000"},
        {"mouzaCode": "M02", "mouzaName": "Unpriced"},
    ])
    mouzas = client.list_mouzas("D01", "C01")
    assert mouzas[0].base_price_mouza == 100000.0
    assert mouzas[0].district_code == "D01"
    assert mouzas[1].base_price_mouza is None


def test_non_finite_numbers_rejected(client):
    respond(client, [
        {"mouzaCode": "M01", "mouzaName": "Bad", "basePriceMouza": "NaN"},
        {"mouzaCode": "M02", "mouzaName": "Worse", "basePriceMouza": "inf"},
    ])
    assert [m.base_price_mouza for m in client.list_mouzas("D01", "C01")] == [None, None]


def test_list_lots_deduplicated(client):
    """Verify repeated (code, name) lots and nameless lots are dropped."""
    respond(client, {"data": [
        {"lotCode": "L01", "lotName": "Lot 1", "basePriceIncreaseLot": 10},
        {"lotCode": "L01", "lotName": "Lot 1", "basePriceIncreaseLot": 10},
        {"lotCode": "L02", "lotName": ""},
        {"lotCode": "L03", "lotName": "Lot 3"},
    ]})
    lots = client.list_lots("D01", "C01")
    assert [l.code for l in lots] == ["L01", "L03"]
    assert lots[0].base_price_increase_lot == 10
    assert lots[1].base_price_increase_lot == 0


def test_list_lots_by_mouza_uses_narrower_endpoint(client):
    respond(client, [])
    client.list_lots("D01", "C01", "M01")
    args, kwargs = client.session.get.call_args
    assert args[0].endswith("/getLotByDistrictAndCircleAndMouza")
    assert kwargs["params"]["mouzaCode"] == "M01"


def test_list_villages(client):
    respond(client, [{"villageCode": "V01", "villageName": "Six Mile", "areaType": "Urban",
                      "landCategory": "Basti"}])
    villages = client.list_villages("D01", "C01", "M01", "L01")
    assert villages[0].area_type == AreaType.URBAN
    assert villages[0].land_category == "Basti"
    assert client.session.get.call_args[1]["params"]["mauzaCode"] == "M01"


def test_list_land_categories(client):
    respond(client, [{"landCategoryGenId": 7, "landCategoryName": "Basti",
                      "basePriceMouzaIncrease": 5}])
    category = client.list_land_categories()[0]
    assert category.id == "7"
    assert category.base_price_mouza_increase == 5


def test_list_geographical_factors(client):
    respond(client, [
        {"districtCode": "D01", "circleCode": "C01", "lotCode": "L01", "daagNumber": "12",
         "geographicalFactor": 1.1},
        {"districtCode": "D01", "circleCode": "C01", "lotCode": "L01"},
    ])
    factors = client.list_geographical_factors("D01", "C01", "L01")
    assert len(factors) == 1
    assert factors[0].daag_number == "12"


def test_list_parameter_bands(client):
    respond(client, [
        {"parameterId": 1, "parameter": "Distance from Main Road", "areaTypeId": 1,
         "minRangeInMeters": 0, "maxRangeInMeters": 100, "weightage": "10"},
        {"parameterId": 2, "parameter": "Distance from Main Road", "areaTypeId": 2,
         "minRangeInMeters": 0, "maxRangeInMeters": 100, "weightage": "4"},
        {"parameterId": 3, "parameter": "width of approach road", "minRangeInMeters": 3,
         "maxRangeInMeters": 6, "weightage": "2"},
    ])
    bands = client.list_parameter_bands()
    assert [(b.code, b.category) for b in bands] == [
        ("1", MAIN_ROAD), ("2", METAL_ROAD),
        ("3", APPROACH_ROAD_FIRST), ("3", APPROACH_ROAD_SECOND),
    ]
    assert bands[0].weight_percent == 10


def test_band_category_fallback():
    assert band_category("Corner plot", None, "10005") == ["10005"]


def test_http_error_becomes_resolution_failure(client):
    """Verify HTTP errors surface as ResolutionFailure naming the lookup, without retrying."""
    response = respond(client, None)
    response.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
    with pytest.raises(ResolutionFailure) as exc:
        client.list_circles("D01")
    assert exc.value.lookup == "circles"
    assert client.session.get.call_count == 1


def test_connection_error_retried(client):
    """Verify transport errors are retried three times before failing."""
    client.session.get.side_effect = requests.ConnectionError("refused")
    with pytest.raises(ResolutionFailure) as exc:
        client.list_districts()
    assert client.session.get.call_count == 3
    assert "refused" in exc.value.cause


def test_transient_error_recovers(client):
    good = MagicMock()
    good.json.return_value = [{"circleCode": "C01", "circleName": "Dispur"}]
    client.session.get.side_effect = [requests.Timeout("slow"), good]
    circles = client.list_circles("D01")
    assert circles[0].code == "C01"
