"""Views for the school statistics dashboard."""

from __future__ import annotations

import json
import logging
from typing import Any

from django.http import HttpRequest, HttpResponse, JsonResponse
from django.shortcuts import render

from core.charting.configs import SCHOOL_BINDINGS, SCHOOL_DASHBOARD
from core.charting.render import compile_dashboard
from core.datasets import load_tables
from core.session_state import clear_dashboard_session, load_dashboard_session, save_dashboard_session
from linking.codec import encode_selection_state
from linking.errors import RenderFailure, SelectionValueError

logger = logging.getLogger(__name__)


def dashboard(request: HttpRequest) -> HttpResponse:
    """Render the dashboard page that embeds the compiled Vega-Lite document.

    Selections stored in the session seed the initial param values, so the
    page shows the same selection state that `panel_data` filters with.
    """

    session = load_dashboard_session(request, config=SCHOOL_DASHBOARD, bindings=SCHOOL_BINDINGS)
    try:
        spec = compile_dashboard(SCHOOL_DASHBOARD, selections=encode_selection_state(session.values()))
    except RenderFailure as exc:
        logger.error("dashboard %r failed to compile: %s", SCHOOL_DASHBOARD.id, exc)
        return render(request, "core/dashboard.html", {"spec": None, "render_error": str(exc)}, status=500)

    return render(
        request,
        "core/dashboard.html",
        {
            "spec": spec,
            "render_error": None,
            "parameter_kinds": {
                name: SCHOOL_BINDINGS.bindings[name].parameter.kind for name in SCHOOL_BINDINGS.names()
            },
        },
    )


def dashboard_spec(request: HttpRequest) -> JsonResponse:
    """Return the compiled Vega-Lite document."""

    try:
        spec = compile_dashboard(SCHOOL_DASHBOARD)
    except RenderFailure as exc:
        logger.error("dashboard %r failed to compile: %s", SCHOOL_DASHBOARD.id, exc)
        return JsonResponse({"error": str(exc)}, status=500)
    return JsonResponse(spec)


def bindings_api(request: HttpRequest) -> JsonResponse:
    """Return the producer -> consumers binding table."""

    parameters = []
    for name in SCHOOL_BINDINGS.names():
        binding = SCHOOL_BINDINGS.bindings[name]
        parameters.append(
            {
                "name": name,
                "kind": binding.parameter.kind,
                "producer": binding.producer,
                "fields": list(binding.fields),
                "filter_consumers": list(binding.filter_consumers),
                "condition_consumers": list(binding.condition_consumers),
            }
        )
    return JsonResponse({"dashboard": SCHOOL_DASHBOARD.id, "parameters": parameters})


def selection_update(request: HttpRequest, name: str) -> JsonResponse:
    """Apply one interaction event to the session's selection state.

    Expects a JSON body ``{"value": ..., "replace": false}``; a null value clears
    the selection and `replace` skips toggle merging for clients that send the
    full selected set.
    Unknown parameter names are accepted and ignored.
    """

    if request.method != "POST":
        return JsonResponse({"error": "POST required."}, status=405)

    payload = _json_body(request)
    if payload is None or "value" not in payload:
        return JsonResponse({"error": "Request body must be a JSON object with a 'value' key."}, status=400)

    replace = payload.get("replace", False)
    if not isinstance(replace, bool):
        return JsonResponse({"error": "'replace' must be a boolean."}, status=400)

    session = load_dashboard_session(request, config=SCHOOL_DASHBOARD, bindings=SCHOOL_BINDINGS)
    try:
        session.update_parameter(name, payload["value"], replace=replace)
    except SelectionValueError as exc:
        return JsonResponse({"error": str(exc)}, status=400)

    save_dashboard_session(request, session)
    return JsonResponse(
        {
            "parameter": name,
            "state": session.state(name),
            "dirty_panels": list(session.take_dirty()),
            "selection": encode_selection_state(session.values()),
        }
    )


def selection_reset(request: HttpRequest) -> JsonResponse:
    """Forget every stored selection for the current session."""

    if request.method != "POST":
        return JsonResponse({"error": "POST required."}, status=405)

    clear_dashboard_session(request, config=SCHOOL_DASHBOARD)
    return JsonResponse({"dirty_panels": [panel.id for panel in SCHOOL_DASHBOARD.panels], "selection": {}})


def panel_data(request: HttpRequest, panel_id: str) -> JsonResponse:
    """Return the rows a panel shows under the current selections.

    The response also carries, for every channel with conditions, the resolved
    per-row value so clients can check highlight state without a renderer.
    """

    panel = SCHOOL_DASHBOARD.panel(panel_id)
    if panel is None:
        return JsonResponse({"error": f"Unknown panel {panel_id!r}."}, status=404)

    try:
        tables = load_tables(SCHOOL_DASHBOARD)
    except FileNotFoundError as exc:
        logger.error("data source missing for panel %r: %s", panel_id, exc)
        return JsonResponse({"error": "Dashboard data is not available."}, status=404)

    session = load_dashboard_session(request, config=SCHOOL_DASHBOARD, bindings=SCHOOL_BINDINGS)
    rows = session.visible_rows(panel, tables)
    conditions = {
        channel: session.resolve_encoding_condition(panel, channel, rows)
        for channel, encoding in panel.encoding.items()
        if encoding.conditions
    }
    return JsonResponse(
        {
            "panel": panel.id,
            "row_count": len(rows),
            "rows": [dict(row) for row in rows],
            "conditions": conditions,
        }
    )


def _json_body(request: HttpRequest) -> dict[str, Any] | None:
    """Parse a JSON object request body, returning None when malformed."""

    try:
        payload = json.loads(request.body.decode("utf-8") or "null")
    except (UnicodeDecodeError, json.JSONDecodeError):
        return None
    return payload if isinstance(payload, dict) else None
