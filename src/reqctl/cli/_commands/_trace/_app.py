"""Cyclopts App definition for trace commands."""

from cyclopts import App

app = App(
    name="trace",
    help="Link requirements to artifacts and report coverage",
    help_on_error=True,
)
