"""Validate the built-in dashboard and print its binding table."""

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from core.charting.configs import SCHOOL_DASHBOARD
from core.charting.render import compile_dashboard
from linking.binding import build_binding_table
from linking.errors import BindingError, RenderFailure


class Command(BaseCommand):
    """Report producer -> consumers wiring and validation findings."""

    help = "Validate the dashboard configuration and print the selection binding table."

    def add_arguments(self, parser) -> None:
        """Add command arguments."""

        parser.add_argument(
            "--permissive",
            action="store_true",
            help="Tolerate references to undeclared parameters (they pass all rows).",
        )

    def handle(self, *args, **options) -> str | None:
        """Run the command."""

        permissive: bool = options["permissive"]
        try:
            table = build_binding_table(SCHOOL_DASHBOARD, strict=not permissive)
            compile_dashboard(SCHOOL_DASHBOARD)
        except BindingError as exc:
            raise CommandError(str(exc)) from exc
        except RenderFailure as exc:
            raise CommandError(f"Dashboard does not compile: {exc}") from exc

        mode = "PERMISSIVE" if permissive else "STRICT"
        self.stdout.write(f"[{mode}] dashboard={SCHOOL_DASHBOARD.id} parameters={len(table.bindings)}")
        for name in table.names():
            binding = table.bindings[name]
            consumers = ", ".join(binding.consumers) or "-"
            self.stdout.write(
                f"{name} ({binding.parameter.kind} on {', '.join(binding.fields)}): "
                f"{binding.producer} -> {consumers}"
            )
        for panel_id, name in table.dangling:
            self.stdout.write(f"dangling: {panel_id} -> {name}")
        for warning in table.warnings:
            self.stderr.write(f"warning: {warning}")
        return None
