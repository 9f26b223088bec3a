"""MCP tools."""

from .result_tools import register_result_tools

__all__ = ["register_result_tools"]
