"""User-facing connectors (console)."""
