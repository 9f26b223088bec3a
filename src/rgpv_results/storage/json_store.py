"""Result store implementations.

This module provides the storage backends for fetched result payloads:
- InMemoryResultStore: Temporary storage in memory (tests and one-off fetches)
- JsonResultStore: One ``<roll_number>.json`` file per result on disk

The JSON directory doubles as the completion cache: every result file stem
is a roll number that does not need to be fetched again. Batch summaries are
written to the same directory with a ``batch_`` prefix and are never mistaken
for results.
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Set, Union

from ..config.logger import logger
from ..connectors.rgpv.interfaces import IResultStore, RecordOutcome

# Files in the results directory that are not individual results.
SUMMARY_PREFIXES = ("batch_", "range_")


def is_result_file(path: Path) -> bool:
    """Whether ``path`` holds one student's result (not a batch summary)."""
    return path.suffix == ".json" and not path.name.startswith(SUMMARY_PREFIXES)


class InMemoryResultStore(IResultStore):
    """In-memory result store.

    Keeps payloads in a dictionary; everything is lost when the process exits.
    """

    def __init__(self, initial: Optional[Dict[str, Dict[str, Any]]] = None):
        self._results: Dict[str, Dict[str, Any]] = dict(initial or {})
        self.logger = logger.bind(storage="memory")

    async def list_completed_identifiers(self) -> Set[str]:
        return set(self._results)

    async def read_result(self, roll_number: str) -> Optional[Dict[str, Any]]:
        return self._results.get(roll_number)

    async def write_result(self, roll_number: str, payload: Dict[str, Any]) -> bool:
        self._results[roll_number] = payload
        self.logger.debug("result_saved", roll_number=roll_number)
        return True


class JsonResultStore(IResultStore):
    """Result store keeping one JSON file per roll number.

    Attributes:
        results_dir: Directory holding the result files.
        logger: Structured logger instance bound with storage type.
    """

    def __init__(self, results_dir: Union[str, Path] = "results"):
        """Initialize the JSON store.

        The directory is created lazily on the first write.

        Args:
            results_dir: Directory holding the result files.
        """
        self.results_dir = Path(results_dir)
        self.logger = logger.bind(storage="json", results_dir=str(self.results_dir))

    def _path(self, roll_number: str) -> Path:
        return self.results_dir / f"{roll_number}.json"

    def _scan(self) -> Set[str]:
        if not self.results_dir.is_dir():
            return set()
        return {
            path.stem
            for path in self.results_dir.iterdir()
            if path.is_file() and is_result_file(path)
        }

    def _write_json(self, path: Path, content: Any) -> None:
        self.results_dir.mkdir(parents=True, exist_ok=True)
        path.write_text(
            json.dumps(content, indent=2, ensure_ascii=False),
            encoding="utf-8",
        )

    async def list_completed_identifiers(self) -> Set[str]:
        """List roll numbers with a result file in the results directory."""
        identifiers = await asyncio.to_thread(self._scan)
        self.logger.info("completed_results_scanned", count=len(identifiers))
        return identifiers

    async def read_result(self, roll_number: str) -> Optional[Dict[str, Any]]:
        """Load the stored payload for ``roll_number``.

        Returns:
            The payload, or None if the file is missing or unreadable.
        """
        path = self._path(roll_number)
        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
            return json.loads(content)
        except FileNotFoundError:
            self.logger.debug("result_not_found", roll_number=roll_number)
            return None
        except (OSError, json.JSONDecodeError) as e:
            self.logger.error("result_load_error", roll_number=roll_number, error=str(e))
            return None

    async def write_result(self, roll_number: str, payload: Dict[str, Any]) -> bool:
        """Write ``payload`` to ``<roll_number>.json``.

        Returns:
            True if the file was written, False on an OS error.
        """
        path = self._path(roll_number)
        try:
            await asyncio.to_thread(self._write_json, path, payload)
            self.logger.debug("result_saved", roll_number=roll_number, path=str(path))
            return True
        except OSError as e:
            self.logger.error(
                "result_save_error",
                roll_number=roll_number,
                error=str(e),
                exc_info=True,
            )
            return False

    async def save_batch_results(
        self,
        outcomes: Iterable[RecordOutcome],
        name: str,
    ) -> Path:
        """Write a batch summary as ``<name>.json``.

        Args:
            outcomes: Outcomes to include.
            name: File stem; should start with ``batch_`` so the file is not
                read back as a result.

        Returns:
            Path of the written file.
        """
        path = self.results_dir / f"{name}.json"
        content = [outcome.to_dict() for outcome in outcomes]
        await asyncio.to_thread(self._write_json, path, content)
        self.logger.info("batch_results_saved", path=str(path), count=len(content))
        return path
