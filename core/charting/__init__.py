"""Declarative dashboard definitions and renderer compilation.

The school dashboard is driven by a `linking.schema.DashboardConfig` value
rather than a hand-written renderer document. This package contains the
built-in config and the compiler that turns it into a Vega-Lite document.
"""
