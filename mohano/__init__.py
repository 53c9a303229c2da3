"""Mohano - real-time event broker for multi-agent activity monitoring."""
