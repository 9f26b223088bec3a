"""Result persistence backends."""

from .json_store import (
    SUMMARY_PREFIXES,
    InMemoryResultStore,
    JsonResultStore,
    is_result_file,
)

__all__ = [
    "SUMMARY_PREFIXES",
    "InMemoryResultStore",
    "JsonResultStore",
    "is_result_file",
]
