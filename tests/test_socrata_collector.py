"""
Tests for the Socrata API client and collector.

HTTP traffic is mocked at the requests.Session level.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from parkvalue.collectors import SocrataAPIClient, SocrataAPIError, SocrataCollector, validate_api_connection
from parkvalue.collectors.geojson_files import load_areas_file, load_parks_file
from parkvalue.config import APIConfig

from conftest import square


def _response(payload=None, status=200):
    response = MagicMock()
    response.status_code = status
    response.json.return_value = payload
    if status >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=response)
    else:
        response.raise_for_status.return_value = None
    return response


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(session):
    return SocrataAPIClient(APIConfig(retry_delay=0.0), session=session)


PARK_ROWS = [
    {"park_no": "1", "park_name": "Humboldt Park", "acres": "207.6", "the_geom": square(0.1)},
    {"park_no": "2", "park_name": "No Acres", "the_geom": None},
    {"park_name": "Missing Id"},
]


def test_headers_use_domain_token(client, monkeypatch):
    monkeypatch.setenv("CHICAGO_APP_TOKEN", "chi-token")
    monkeypatch.setenv("COOKCOUNTY_APP_TOKEN", "cook-token")

    assert client.headers_for(client.api.chicago_base_url)["X-App-Token"] == "chi-token"
    assert client.headers_for(client.api.cook_county_base_url)["X-App-Token"] == "cook-token"


def test_headers_without_token(client, monkeypatch):
    monkeypatch.delenv("CHICAGO_APP_TOKEN", raising=False)
    assert "X-App-Token" not in client.headers_for(client.api.chicago_base_url)


def test_build_params():
    params = SocrataAPIClient.build_params(limit=1, where="x > 1", offset=0)
    assert params == {"$where": "x > 1", "$limit": 1}


def test_get_all_pages(client, session):
    session.get.side_effect = [_response([{"id": i} for i in range(2)]), _response([{"id": 2}])]
    rows = client.get_all("https://example.org/resource", "abcd-1234", page_limit=2)

    assert [r["id"] for r in rows] == [0, 1, 2]
    assert session.get.call_count == 2
    assert session.get.call_args.kwargs["params"]["$offset"] == 2


def test_retries_on_rate_limit(client, session):
    session.get.side_effect = [_response(status=429), _response([{"ok": True}])]
    with patch("parkvalue.collectors.socrata.api_client.time.sleep") as sleep:
        assert client.get("https://example.org/resource", "abcd-1234") == [{"ok": True}]
    assert sleep.call_count == 1


def test_raises_after_retries(client, session):
    session.get.side_effect = requests.exceptions.ConnectionError("down")
    with patch("parkvalue.collectors.socrata.api_client.time.sleep"):
        with pytest.raises(SocrataAPIError):
            client.get("https://example.org/resource", "abcd-1234")
    assert session.get.call_count == client.api.max_retries


def test_client_error_is_not_retried(client, session):
    session.get.return_value = _response(status=404)
    with pytest.raises(SocrataAPIError):
        client.get("https://example.org/resource", "abcd-1234")
    assert session.get.call_count == 1


def test_fetch_parks_parses_and_caches(cache):
    client = MagicMock()
    client.get_all.return_value = PARK_ROWS
    collector = SocrataCollector(cache=cache, client=client)

    parks = collector.fetch_parks()
    assert [p.park_id for p in parks] == [1, 2]
    assert parks[0].acres == pytest.approx(207.6)
    assert parks[1].acres == 0.0

    # Served from the PARKS namespace the second time
    assert [p.park_id for p in collector.fetch_parks()] == [1, 2]
    assert client.get_all.call_count == 1
    assert cache.get("PARKS", "all") == PARK_ROWS


def test_fetch_community_areas(cache):
    client = MagicMock()
    client.get_all.return_value = [{"area_numbe": 23, "community": "HUMBOLDT PARK", "the_geom": square(0.5)}]
    areas = SocrataCollector(cache=cache, client=client).fetch_community_areas()
    assert areas[0].area_code == "23"
    assert areas[0].name == "HUMBOLDT PARK"


def test_parcel_lookup(cache):
    client = MagicMock()
    client.build_params.side_effect = SocrataAPIClient.build_params
    client.get.return_value = [{"pin": "16-01-100-001"}]
    collector = SocrataCollector(cache=cache, client=client)

    assert collector.fetch_parcel_by_location(41.9, -87.7) == {"pin": "16-01-100-001"}
    base_url, dataset, params = client.get.call_args.args
    assert base_url == collector.api.cook_county_base_url
    assert params["$where"] == "within_circle(the_geom,41.9,-87.7,50)"


def test_parcel_lookup_failures_are_not_found(cache):
    client = MagicMock()
    client.build_params.side_effect = SocrataAPIClient.build_params
    collector = SocrataCollector(cache=cache, client=client)

    client.get.return_value = []
    assert collector.fetch_parcel_by_location(41.9, -87.7) is None

    client.get.side_effect = SocrataAPIError("boom")
    assert collector.fetch_parcel_by_location(41.9, -87.7) is None


def test_validate_api_connection(client, session):
    session.get.return_value = _response([{"area_numbe": "1"}])
    assert validate_api_connection(client).connected is True

    session.get.return_value = _response(status=500)
    status = validate_api_connection(client)
    assert status.connected is False
    assert "500" in status.error


def test_load_geojson_files(tmp_path):
    import json

    parks_path = tmp_path / "parks.geojson"
    parks_path.write_text(json.dumps({
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature", "properties": {"park_no": 4, "park_name": "Douglass"}, "geometry": square(0.1)},
            {"type": "Feature", "properties": {"park_name": "No Id"}, "geometry": None},
        ],
    }))
    areas_path = tmp_path / "areas.json"
    areas_path.write_text(json.dumps([{"area_numbe": "29", "community": "NORTH LAWNDALE"}]))

    parks = load_parks_file(str(parks_path))
    assert [p.park_id for p in parks] == [4]
    assert parks[0].geometry["type"] == "Polygon"
    assert load_areas_file(str(areas_path))[0].geometry is None


def test_collector_uses_given_api_settings(cache):
    api = APIConfig(chicago_base_url="https://data.example.org/resource", parks_dataset="test-park")
    client = MagicMock()
    client.get_all.return_value = []
    SocrataCollector(cache=cache, client=client, api=api).fetch_parks()
    client.get_all.assert_called_once_with("https://data.example.org/resource", "test-park")
