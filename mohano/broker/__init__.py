"""Event broker: bounded per-workspace history, fan-out and replay queries."""
