"""RGPV result tools for the MCP server.

This module exposes result fetching to MCP clients: one roll number, a range
of roll numbers, and the OCR statistics of the last run. Every tool builds
its own run context, so tool calls do not share sessions or OCR engines.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from ...batch.orchestrator import BatchOrchestrator
from ...config.logger import logger
from ...config.settings import load_config
from ...connectors.rgpv.interfaces import RecordOutcome, StudentRecord
from ...context import RunContext, create_context

_last_ocr_stats: Optional[Dict[str, Any]] = None


def _build_context(**overrides: Any) -> RunContext:
    """Create a run context from the environment plus ``overrides``."""
    return create_context(load_config(**overrides))


async def _run_records(
    records: List[StudentRecord],
    concurrency: Optional[int] = None,
    **overrides: Any,
) -> List[RecordOutcome]:
    global _last_ocr_stats

    async with _build_context(**overrides) as context:
        try:
            return await BatchOrchestrator(context).run(records, concurrency=concurrency)
        finally:
            _last_ocr_stats = context.solver.get_stats()


def _error(message: str) -> Dict[str, Any]:
    return {
        "success": False,
        "message": message,
        "timestamp": datetime.now().isoformat(),
    }


async def rgpv_get_result(roll_number: str, semester: str, force: bool = False) -> Dict[str, Any]:
    """Fetch the grading result of one student.

    Args:
        roll_number: Full roll number, e.g. 0818CS231001
        semester: Semester number, e.g. 3
        force: Fetch again even if a stored result exists

    Returns:
        Dictionary with the outcome, including the result payload on success
    """
    try:
        logger.info("rgpv_get_result_request", roll_number=roll_number, semester=semester)
        record = StudentRecord(roll_number.strip().upper(), semester.strip(), force)
        outcomes = await _run_records([record], concurrency=1)

        result = outcomes[0].to_dict()
        result["timestamp"] = datetime.now().isoformat()
        logger.info("rgpv_get_result_done", roll_number=roll_number, success=result["success"])
        return result

    except Exception as e:
        logger.error("rgpv_get_result_error", error=str(e), exc_info=True)
        return _error(f"Error fetching result: {str(e)}")


async def rgpv_get_batch(
    prefix: str,
    start: str,
    end: str,
    semester: str,
    concurrency: Optional[int] = None,
) -> Dict[str, Any]:
    """Fetch the results of a range of roll numbers.

    Args:
        prefix: Roll number prefix, e.g. 0818CS23
        start: First 4-digit suffix, e.g. 1001
        end: Last 4-digit suffix, e.g. 1060
        semester: Semester number
        concurrency: Parallel fetches (default from configuration)

    Returns:
        Dictionary with success/failure counts and one outcome per roll number
    """
    try:
        config = load_config(prefix=prefix, start=start, end=end, semester=semester)
        records = [
            StudentRecord(roll_number, config.semester)
            for roll_number in config.roll_numbers()
        ]
        if not records:
            return _error(f"Empty roll number range: {start}-{end}")

        logger.info("rgpv_get_batch_request", prefix=prefix, start=start, end=end, count=len(records))
        outcomes = await _run_records(
            records,
            concurrency=concurrency,
            prefix=prefix,
            start=start,
            end=end,
            semester=semester,
        )

        successful = sum(1 for outcome in outcomes if outcome.success)
        return {
            "success": True,
            "total": len(outcomes),
            "successful": successful,
            "failed": len(outcomes) - successful,
            "from_cache": sum(1 for outcome in outcomes if outcome.from_cache),
            "outcomes": [outcome.to_dict() for outcome in outcomes],
            "timestamp": datetime.now().isoformat(),
        }

    except Exception as e:
        logger.error("rgpv_get_batch_error", error=str(e), exc_info=True)
        return _error(f"Error fetching batch: {str(e)}")


async def rgpv_ocr_stats() -> Dict[str, Any]:
    """Get the OCR statistics of the last fetch.

    Returns:
        Dictionary with OCR request counts, average time and success rate
    """
    if _last_ocr_stats is None:
        return {
            "success": True,
            "has_stats": False,
            "message": "No fetch has run yet",
        }
    return {
        "success": True,
        "has_stats": True,
        "stats": dict(_last_ocr_stats),
    }


def register_result_tools(mcp: FastMCP) -> None:
    """Register the RGPV result tools with the MCP server."""
    mcp.tool()(rgpv_get_result)
    mcp.tool()(rgpv_get_batch)
    mcp.tool()(rgpv_ocr_stats)
