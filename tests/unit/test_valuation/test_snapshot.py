import json
import pytest
from valuation.errors import SnapshotVersionError
from valuation.models import (
    AreaDetails, AreaType, CurrentLandUse, LocationAttributes, ProposedLandUse, ValuationRequest,
)
from valuation.snapshot import SNAPSHOT_VERSION, FormSnapshot


def make_request():
    return ValuationRequest(
        district_code="D01", circle_code="C01", mouza_code="M01", lot_code="L01",
        village_code="V01", daag_number="12", land_use=ProposedLandUse("AGRI", "COMM"),
        area_type=AreaType.URBAN, area=AreaDetails(bigha=1, katha=0, lessa=5),
        band_selections=(("main_road", "R1"),),
        location=LocationAttributes(corner_plot=True),
    )


def test_request_round_trip_through_snapshot():
    """Verify a request saved as a draft rebuilds into the same request."""
    request = make_request()
    assert FormSnapshot.from_request(request).to_request() == request


def test_save_and_load(tmp_path):
    path = str(tmp_path / "drafts" / "form.json")
    snapshot = FormSnapshot.from_request(make_request())
    snapshot.save(path)

    loaded = FormSnapshot.load(path)
    assert loaded.saved_at is not None
    assert loaded.to_request() == make_request()
    with open(path) as f:
        assert json.load(f)["version"] == SNAPSHOT_VERSION


def test_load_missing_file(tmp_path):
    assert FormSnapshot.load(str(tmp_path / "none.json")) is None


def test_partial_draft_keeps_raw_area_text():
    """Verify an unfinished draft with bad area text still loads, the bad field reading as 0."""
    snapshot = FormSnapshot(selection={"district": "D01"},
                            area_text={"bigha": "2", "katha": "oops", "lessa": ""})
    data = FormSnapshot.from_dict(snapshot.to_dict())
    assert data.area_text["katha"] == "oops"
    request = data.to_request()
    assert request.total_lessa == 200
    assert request.circle_code == ""
    assert request.land_use is None


def test_v1_snapshot_migrated():
    v1 = {
        "version": 1,
        "district_code": "D01",
        "circle_code": "C01",
        "mouza_code": "M01",
        "lot_code": "L01",
        "current_land_use": "AGRI",
        "area_lessa": 30,
    }
    snapshot = FormSnapshot.from_dict(v1)
    assert snapshot.version == SNAPSHOT_VERSION
    request = snapshot.to_request()
    assert request.mouza_code == "M01"
    assert request.land_use == CurrentLandUse("AGRI")
    assert request.total_lessa == 30


def test_newer_version_rejected():
    with pytest.raises(SnapshotVersionError):
        FormSnapshot.from_dict({"version": SNAPSHOT_VERSION + 1})


def test_hierarchy_view():
    snapshot = FormSnapshot.from_request(make_request())
    assert snapshot.hierarchy.is_complete()
