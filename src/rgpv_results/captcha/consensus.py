"""Majority-vote CAPTCHA solving over repeated OCR readings.

A single OCR pass over the result site's CAPTCHA is unreliable, but the site
serves a freshly rendered image of the same code on every request. The solver
fetches the image several times, reads each copy through the OCR worker pool
and returns the reading with the most votes.
"""

import asyncio
import re
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from ..config.logger import logger
from ..connectors.rgpv.interfaces import CaptchaSample, ConsensusResult
from ..ocr.pool import OCRPoolNotInitializedError, OCRStats, OCRWorkerPool

MIN_IMAGE_BYTES = 100
MIN_TEXT_LENGTH = 4
MAX_TEXT_LENGTH = 6

_IMAGE_SIGNATURES = (
    b"\x89PNG",
    b"\xff\xd8",
    b"GIF8",
)
_NON_ALPHANUMERIC = re.compile(r"[^A-Z0-9]")

FetchImage = Callable[[], Awaitable[bytes]]


def normalize_captcha_text(raw_text: str) -> str:
    """Uppercase ``raw_text`` and drop everything outside ``[A-Z0-9]``."""
    return _NON_ALPHANUMERIC.sub("", raw_text.upper())


def is_valid_image(data: bytes) -> bool:
    """Check that ``data`` looks like a PNG, JPEG or GIF image."""
    if not data or len(data) < MIN_IMAGE_BYTES:
        return False
    return data.startswith(_IMAGE_SIGNATURES)


class ConsensusCaptchaSolver:
    """Solve CAPTCHAs by majority vote over several OCR readings.

    OCR calls go through the shared worker pool and are further limited by a
    semaphore, so many pipelines can solve at the same time without queueing
    more recognitions than the machine can run.
    """

    def __init__(
        self,
        pool: OCRWorkerPool,
        ocr_concurrency: int = 2,
        sample_delay: float = 1.0,
        ocr_retry_delay: float = 1.0,
        debug_dir: Optional[Union[str, Path]] = None,
    ):
        """Initialize the solver.

        Args:
            pool: Initialized (or soon to be) OCR worker pool.
            ocr_concurrency: Maximum recognitions in flight across all solves.
            sample_delay: Seconds to wait before each sample after the first.
            ocr_retry_delay: Seconds to wait before retrying a failed OCR call.
            debug_dir: If set, every fetched image is saved in this directory.
        """
        self.pool = pool
        self.ocr_concurrency = ocr_concurrency
        self.sample_delay = sample_delay
        self.ocr_retry_delay = ocr_retry_delay
        self.debug_dir = Path(debug_dir) if debug_dir else None

        self.stats = OCRStats()
        self._semaphore = asyncio.Semaphore(ocr_concurrency)
        self._debug_counter = 0
        self.logger = logger.bind(component="captcha_consensus")

    async def _save_debug_image(self, image: bytes) -> None:
        self._debug_counter += 1
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        path = self.debug_dir / f"captcha_{stamp}_{self._debug_counter}.png"
        try:
            await asyncio.to_thread(self.debug_dir.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(path.write_bytes, image)
        except OSError as e:
            self.logger.warning("captcha_debug_save_failed", path=str(path), error=str(e))

    async def _read_image(self, image: bytes) -> Optional[str]:
        """Run OCR once on ``image``, retrying a failed recognition once.

        Returns:
            The raw OCR text, or None if the image was rejected or both
            recognitions failed.
        """
        started = time.monotonic()
        self.stats.total_requests += 1

        if not is_valid_image(image):
            self.stats.failed_requests += 1
            self.logger.debug("captcha_image_invalid", size=len(image))
            return None

        try:
            async with self._semaphore:
                slot = await self.pool.acquire()
                try:
                    try:
                        text = await self.pool.recognize(slot, image)
                    except OCRPoolNotInitializedError:
                        raise
                    except Exception as e:
                        self.logger.warning("ocr_retrying", slot=slot.index, error=str(e))
                        await asyncio.sleep(self.ocr_retry_delay)
                        text = await self.pool.recognize(slot, image)
                finally:
                    await self.pool.release(slot)
        except OCRPoolNotInitializedError:
            raise
        except Exception as e:
            self.stats.failed_requests += 1
            self.logger.error("ocr_failed", error=str(e))
            return None
        finally:
            self.stats.total_time_ms += (time.monotonic() - started) * 1000

        self.stats.successful_requests += 1
        return text

    async def solve(
        self,
        fetch_image: FetchImage,
        max_samples: int = 7,
        early_stop_votes: int = 3,
    ) -> Optional[ConsensusResult]:
        """Fetch and read the CAPTCHA repeatedly and return the majority reading.

        Args:
            fetch_image: Async callable returning the bytes of a freshly
                fetched CAPTCHA image.
            max_samples: Maximum number of images to fetch.
            early_stop_votes: Stop as soon as one reading has this many votes.

        Returns:
            The leading reading, or None if no sample passed the filters.

        Raises:
            OCRPoolNotInitializedError: If the OCR pool is not running.
        """
        votes: Dict[str, int] = {}
        leader: Optional[str] = None
        leader_votes = 0
        samples_taken = 0
        accepted = 0

        for index in range(max_samples):
            if index > 0:
                await asyncio.sleep(self.sample_delay)

            try:
                image = await fetch_image()
            except Exception as e:
                self.logger.warning("captcha_fetch_failed", sample=index + 1, error=str(e))
                continue

            samples_taken += 1
            if self.debug_dir:
                await self._save_debug_image(image)

            raw_text = await self._read_image(image)
            if raw_text is None:
                continue

            sample = CaptchaSample(raw_text=raw_text, normalized=normalize_captcha_text(raw_text))
            if not MIN_TEXT_LENGTH <= len(sample.normalized) <= MAX_TEXT_LENGTH:
                self.logger.debug(
                    "captcha_sample_rejected",
                    sample=index + 1,
                    raw_text=sample.raw_text,
                    normalized=sample.normalized,
                )
                continue

            accepted += 1
            count = votes.get(sample.normalized, 0) + 1
            votes[sample.normalized] = count
            # Ties keep the reading that reached the count first.
            if count > leader_votes:
                leader, leader_votes = sample.normalized, count

            self.logger.debug(
                "captcha_sample_accepted",
                sample=index + 1,
                text=sample.normalized,
                votes=count,
                leader=leader,
            )

            if leader_votes >= early_stop_votes:
                break

        if leader is None:
            self.logger.info("captcha_consensus_failed", samples=samples_taken)
            return None

        result = ConsensusResult(
            text=leader,
            votes=leader_votes,
            samples_taken=samples_taken,
            accepted_samples=accepted,
        )
        self.logger.debug(
            "captcha_consensus_reached",
            text=result.text,
            votes=result.votes,
            samples=result.samples_taken,
            distribution=votes,
        )
        return result

    def get_stats(self) -> Dict[str, Any]:
        """Return a snapshot of OCR statistics."""
        return {
            "total_requests": self.stats.total_requests,
            "successful_requests": self.stats.successful_requests,
            "failed_requests": self.stats.failed_requests,
            "average_time_ms": round(self.stats.average_time_ms, 2),
            "success_rate": round(self.stats.success_rate, 2),
            "pool_size": self.pool.size,
            "busy_workers": self.pool.busy_count,
            "ocr_concurrency": self.ocr_concurrency,
        }
