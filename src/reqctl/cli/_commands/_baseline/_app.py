"""Cyclopts App definition for baseline commands."""

from cyclopts import App

app = App(
    name="baseline",
    help="Capture and compare requirement baselines",
    help_on_error=True,
)
