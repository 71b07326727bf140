"""Cyclopts App definition for rfc commands."""

from cyclopts import App

app = App(
    name="rfc",
    help="Propose and resolve change requests",
    help_on_error=True,
)
