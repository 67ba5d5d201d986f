"""Linked-selection resolution for declarative dashboards.

This package describes panels and selection parameters as immutable values and
resolves, per interaction, which rows each panel shows and which conditional
encoding values apply. It must not import Django or perform any I/O.
"""

from .binding import BindingTable, build_binding_table
from .session import DashboardSession

__all__ = ["BindingTable", "DashboardSession", "build_binding_table"]
