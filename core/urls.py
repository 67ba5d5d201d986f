"""URL configuration for core views."""

from __future__ import annotations

from django.urls import path

from core import views

app_name = "core"

urlpatterns = [
    path("", views.dashboard, name="dashboard"),
    path("api/spec/", views.dashboard_spec, name="dashboard_spec"),
    path("api/bindings/", views.bindings_api, name="bindings"),
    path("api/selection/reset/", views.selection_reset, name="selection_reset"),
    path("api/selection/<str:name>/", views.selection_update, name="selection_update"),
    path("api/panels/<str:panel_id>/", views.panel_data, name="panel_data"),
]
