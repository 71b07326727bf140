"""reqctl: requirements lifecycle and change-control engine."""
