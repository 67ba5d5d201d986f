"""Store dashboard selection state in the browser session.

Each browser session owns one `DashboardSession`; nothing is shared between
sessions. Values are stored in their JSON-safe encoded form under a key that
includes the dashboard id.
"""

from __future__ import annotations

import logging
from typing import Final

from django.http import HttpRequest

from linking.binding import BindingTable
from linking.codec import decode_selection_state, encode_selection_state
from linking.errors import SelectionValueError
from linking.schema import DashboardConfig
from linking.session import DashboardSession

logger = logging.getLogger(__name__)

SESSION_KEY_PREFIX: Final[str] = "schoolviz_selection"


def session_key(config: DashboardConfig) -> str:
    """Return the session key used for a dashboard's selection state."""

    return f"{SESSION_KEY_PREFIX}:{config.id}"


def load_dashboard_session(
    request: HttpRequest,
    *,
    config: DashboardConfig,
    bindings: BindingTable,
) -> DashboardSession:
    """Restore the selection state stored for the current session.

    Stored values that no longer fit their parameter are discarded rather than
    failing the request.
    """

    stored = getattr(request, "session", {}).get(session_key(config))
    raw_values = decode_selection_state(stored, bindings=bindings)
    try:
        return DashboardSession(config, bindings=bindings, values=raw_values)
    except SelectionValueError:
        logger.warning("discarding invalid stored selection state for dashboard %r", config.id)
        return DashboardSession(config, bindings=bindings)


def save_dashboard_session(request: HttpRequest, session: DashboardSession) -> None:
    """Persist the session's parameter values into the request session."""

    request.session[session_key(session.config)] = encode_selection_state(session.values())
    request.session.modified = True


def clear_dashboard_session(request: HttpRequest, *, config: DashboardConfig) -> None:
    """Forget every stored selection for a dashboard."""

    request.session.pop(session_key(config), None)
    request.session.modified = True
