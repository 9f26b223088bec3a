"""Connectors for remote result services."""
