"""Cyclopts App definition for req commands."""

from cyclopts import App

app = App(
    name="req",
    help="Create and manage requirements",
    help_on_error=True,
)
