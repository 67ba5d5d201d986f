"""Django integration tests for the dashboard page and selection endpoints."""

from __future__ import annotations

import json

import pytest
from django.urls import reverse

from core.charting.configs import SCHOOL_DASHBOARD

pytestmark = pytest.mark.integration


def _post_selection(client, name: str, body: object):
    return client.post(
        reverse("core:selection_update", args=[name]),
        data=json.dumps(body),
        content_type="application/json",
    )


def test_dashboard_page_renders(client) -> None:
    """The dashboard page embeds the compiled spec and parameter kinds."""

    response = client.get(reverse("core:dashboard"))

    assert response.status_code == 200
    assert response.context["render_error"] is None
    assert response.context["parameter_kinds"]["embedding_brush"] == "interval"
    assert b'id="dashboard-spec"' in response.content


def test_dashboard_spec_endpoint_returns_vega_lite(client) -> None:
    """The spec endpoint serves the compiled document as JSON."""

    response = client.get(reverse("core:dashboard_spec"))

    assert response.status_code == 200
    assert response.json()["$schema"].endswith("vega-lite/v5.json")


def test_bindings_endpoint_lists_producers_and_consumers(client) -> None:
    """The bindings endpoint exposes the producer -> consumers table."""

    payload = client.get(reverse("core:bindings")).json()

    by_name = {item["name"]: item for item in payload["parameters"]}
    assert payload["dashboard"] == SCHOOL_DASHBOARD.id
    assert by_name["school_click"]["producer"] == "map"
    assert "safety_vs_attendance" in by_name["school_click"]["filter_consumers"]


def test_selection_update_reports_dirty_consumers_and_persists(client) -> None:
    """Updates return the dirty consumers and are stored in the session."""

    response = _post_selection(client, "level_click", {"value": ["HS"]})

    assert response.status_code == 200
    payload = response.json()
    assert payload["state"] == "active"
    assert "safety_by_level" in payload["dirty_panels"]
    assert payload["selection"] == {"level_click": [{"level": "HS"}]}

    second = _post_selection(client, "level_click", {"value": ["ES", "HS"], "replace": True}).json()
    assert second["selection"] == {"level_click": [{"level": "ES"}, {"level": "HS"}]}


def test_selection_update_for_unknown_parameter_is_ignored(client) -> None:
    """Unknown parameter names are accepted and change nothing."""

    response = _post_selection(client, "not_a_param", {"value": ["x"]})

    assert response.status_code == 200
    assert response.json() == {"parameter": "not_a_param", "state": None, "dirty_panels": [], "selection": {}}


def test_selection_update_rejects_bad_requests(client) -> None:
    """Wrong methods, missing values and malformed selections are rejected."""

    url = reverse("core:selection_update", args=["embedding_brush"])

    assert client.get(url).status_code == 405
    assert client.post(url, data="not json", content_type="application/json").status_code == 400
    assert _post_selection(client, "embedding_brush", {"replace": True}).status_code == 400
    assert _post_selection(client, "embedding_brush", {"value": ["S01"]}).status_code == 400


def test_selection_reset_clears_session_state(client) -> None:
    """Resetting forgets stored selections and marks every panel dirty."""

    _post_selection(client, "school_click", {"value": ["S01"]})

    response = client.post(reverse("core:selection_reset"))

    assert response.status_code == 200
    assert len(response.json()["dirty_panels"]) == len(SCHOOL_DASHBOARD.panels)
    cleared = _post_selection(client, "level_click", {"value": None}).json()
    assert cleared["selection"] == {"level_click": []}


def test_panel_data_applies_session_selections(client, data_dir) -> None:
    """Panel rows reflect the stored brush and expose resolved conditions."""

    _post_selection(client, "embedding_brush", {"value": {"x": [0, 5], "y": [-2, 2]}})

    payload = client.get(reverse("core:panel_data", args=["top_schools"])).json()

    assert payload["row_count"] == 15
    assert [row["rank"] for row in payload["rows"]][:3] == [1, 2, 3]
    assert all(0 <= row["x"] <= 5 for row in payload["rows"])
    assert set(payload["conditions"]["opacity"]) == {1}


def test_panel_data_map_drops_unjoined_schools(client, data_dir) -> None:
    """The map never returns spatial rows missing from the embedding."""

    payload = client.get(reverse("core:panel_data", args=["map"])).json()

    assert payload["row_count"] == 10
    assert "SPATIAL_ONLY" not in {row["school"] for row in payload["rows"]}
    assert payload["conditions"]["strokeWidth"] == [3] * 10


def test_panel_data_unknown_panel_returns_404(client, data_dir) -> None:
    """Unknown panel ids are a 404."""

    response = client.get(reverse("core:panel_data", args=["nope"]))

    assert response.status_code == 404


def test_panel_data_missing_files_returns_404(client, settings, tmp_path) -> None:
    """A data directory without the CSV files yields a 404 instead of a crash."""

    settings.SCHOOLVIZ_DATA_DIR = tmp_path / "empty"

    response = client.get(reverse("core:panel_data", args=["embedding"]))

    assert response.status_code == 404


@pytest.mark.parametrize("value", [3, 3.5, True])
def test_selection_update_accepts_numeric_scalar_keys(client, value) -> None:
    """Scalar JSON values select a single key instead of failing."""

    response = _post_selection(client, "school_click", {"value": value})

    assert response.status_code == 200
    assert response.json()["selection"] == {"school_click": [{"school": value}]}


@pytest.mark.parametrize(
    "body",
    [
        {"value": [{"school": ["S01"]}]},
        {"value": [[{"school": "S01"}]]},
        {"value": ["S01"], "replace": "false"},
        {"value": ["S01"], "replace": 1},
    ],
)
def test_selection_update_rejects_malformed_point_payloads(client, body) -> None:
    """Unhashable keys and non-boolean replace flags are client errors."""

    response = _post_selection(client, "school_click", body)

    assert response.status_code == 400
    assert "error" in response.json()


def test_selection_update_rejects_string_interval_bounds(client) -> None:
    """Interval bounds must be numbers, not strings."""

    response = _post_selection(client, "embedding_brush", {"value": {"x": "15"}})

    assert response.status_code == 400


def test_dashboard_page_seeds_stored_selections(client) -> None:
    """After a reload the compiled params carry the session's selections."""

    _post_selection(client, "school_click", {"value": ["S01"]})
    _post_selection(client, "embedding_brush", {"value": {"x": [0, 5], "y": [-2, 2]}})
    _post_selection(client, "level_click", {"value": None})

    response = client.get(reverse("core:dashboard"))

    spec = response.context["spec"]
    params = {
        param["name"]: param
        for section in spec["vconcat"]
        for row in section["vconcat"]
        for unit in row.get("hconcat", [row])
        for param in unit.get("params", [])
    }
    assert params["school_click"]["value"] == [{"school": "S01"}]
    assert params["embedding_brush"]["value"] == {"x": [0.0, 5.0], "y": [-2.0, 2.0]}
    assert "value" not in params["level_click"]
    assert "value" not in params["top_school_select"]
