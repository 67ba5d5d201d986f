"""Minimal smoke tests for initial scaffolding."""

from __future__ import annotations

import pytest


@pytest.mark.unit
def test_linking_package_imports() -> None:
    """Import the linking package and verify the public entry points exist."""

    from linking import DashboardSession, build_binding_table

    assert callable(build_binding_table)
    assert callable(DashboardSession)


@pytest.mark.integration
def test_django_project_loads() -> None:
    """Import and initialize Django to verify settings are valid."""

    import os

    import django
    from django.conf import settings

    os.environ.setdefault("DJANGO_SETTINGS_MODULE", "schoolviz.settings")
    django.setup()
    assert "core.apps.CoreConfig" in settings.INSTALLED_APPS


@pytest.mark.unit
def test_channel_encoding_defaults_build() -> None:
    """Schema dataclasses with mapping defaults construct without arguments."""

    from linking.schema import ChannelEncoding, Panel

    encoding = ChannelEncoding()
    panel = Panel(id="p", title="P", source="rows", mark="bar")

    assert encoding.field is None
    assert dict(encoding.options) == {}
    assert dict(panel.encoding) == {}
    assert dict(panel.mark_options) == {}
