"""MCP server for the RGPV result connector."""

from .server import create_server

__all__ = ["create_server"]
