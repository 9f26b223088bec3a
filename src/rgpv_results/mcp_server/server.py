"""
MCP server exposing the RGPV result tools.
Runs over stdio; all logging goes to stderr.
"""
from mcp.server.fastmcp import FastMCP

from ..config.logger import logger
from .tools.result_tools import register_result_tools

SERVER_NAME = "rgpv-results"


def create_server() -> FastMCP:
    """Build the FastMCP server with every tool registered."""
    mcp = FastMCP(SERVER_NAME)
    register_result_tools(mcp)
    return mcp


def run() -> None:
    """Entry point for ``rgpv-results-mcp``."""
    logger.info("mcp_server_starting", name=SERVER_NAME, transport="stdio")
    create_server().run()


if __name__ == "__main__":
    run()
