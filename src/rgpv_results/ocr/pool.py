"""Fixed-size pool of OCR engine instances.

The pool owns every engine it creates. Callers borrow a :class:`WorkerSlot`
with :meth:`OCRWorkerPool.acquire`, run recognitions through
:meth:`OCRWorkerPool.recognize` and hand the slot back with
:meth:`OCRWorkerPool.release`. The slot table is guarded by an
``asyncio.Condition`` so no slot is ever held by two callers at once.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..config.logger import logger
from .engine import IOCREngine, TesseractEngine


class OCRPoolError(Exception):
    """Base class for OCR pool failures."""
    pass


class OCRPoolInitializationError(OCRPoolError):
    """Raised when not a single OCR engine could be created."""
    pass


class OCRPoolNotInitializedError(OCRPoolError):
    """Raised when the pool is used before initialize() or after shutdown()."""
    pass


@dataclass(eq=False)
class WorkerSlot:
    """One engine instance plus its busy flag.

    Slots compare by identity; callers treat them as opaque handles.
    """
    index: int
    engine: IOCREngine = field(repr=False)
    busy: bool = False


@dataclass
class OCRStats:
    """Counters for OCR requests made through the consensus solver."""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_time_ms: float = 0.0

    @property
    def average_time_ms(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.total_time_ms / self.total_requests

    @property
    def success_rate(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.successful_requests / self.total_requests * 100


class OCRWorkerPool:
    """Pool of warmed OCR engines shared by every pipeline in a run."""

    def __init__(
        self,
        engine_factory: Callable[[], IOCREngine] = TesseractEngine,
        max_init_attempts: int = 3,
        init_retry_delay: float = 1.0,
    ):
        """Initialize an empty pool.

        Args:
            engine_factory: Zero-argument callable building one engine.
            max_init_attempts: Creation attempts per slot before giving up
                on that slot.
            init_retry_delay: Seconds to wait between creation attempts.
        """
        self.engine_factory = engine_factory
        self.max_init_attempts = max_init_attempts
        self.init_retry_delay = init_retry_delay

        self._slots: List[WorkerSlot] = []
        self._initialized = False
        self._condition = asyncio.Condition()
        self._init_lock = asyncio.Lock()
        self.logger = logger.bind(component="ocr_pool")

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def size(self) -> int:
        return len(self._slots)

    @property
    def busy_count(self) -> int:
        return sum(1 for slot in self._slots if slot.busy)

    async def _create_engine(self, index: int) -> Optional[IOCREngine]:
        for attempt in range(1, self.max_init_attempts + 1):
            try:
                engine = await asyncio.to_thread(self.engine_factory)
                self.logger.debug("ocr_engine_created", slot=index, attempt=attempt)
                return engine
            except Exception as e:
                self.logger.error(
                    "ocr_engine_creation_failed",
                    slot=index,
                    attempt=attempt,
                    error=str(e),
                )
                if attempt < self.max_init_attempts:
                    await asyncio.sleep(self.init_retry_delay)
        return None

    async def initialize(self, pool_size: int = 2) -> None:
        """Create and warm ``pool_size`` engines.

        A second call while the pool is initialized does nothing.

        Raises:
            OCRPoolInitializationError: If no engine could be created.
        """
        async with self._init_lock:
            if self._initialized:
                return

            self.logger.info("ocr_pool_initializing", pool_size=pool_size)

            slots = []
            for index in range(pool_size):
                engine = await self._create_engine(index)
                if engine is not None:
                    slots.append(WorkerSlot(index=index, engine=engine))

            if not slots:
                raise OCRPoolInitializationError(
                    f"Failed to initialize any OCR engines after "
                    f"{self.max_init_attempts} attempts per slot"
                )

            if len(slots) < pool_size:
                self.logger.warning(
                    "ocr_pool_partially_initialized",
                    requested=pool_size,
                    created=len(slots),
                )

            async with self._condition:
                self._slots = slots
                self._initialized = True

            self.logger.info("ocr_pool_initialized", workers=len(slots))

    async def acquire(self) -> WorkerSlot:
        """Borrow an idle slot, waiting until one is released if needed.

        Raises:
            OCRPoolNotInitializedError: If the pool is not initialized, or is
                shut down while the caller waits.
        """
        async with self._condition:
            while True:
                if not self._initialized:
                    raise OCRPoolNotInitializedError("OCR pool is not initialized")

                for slot in self._slots:
                    if not slot.busy:
                        slot.busy = True
                        return slot

                await self._condition.wait()

    async def release(self, slot: WorkerSlot) -> None:
        """Return a slot to the pool. Unknown or idle slots are ignored."""
        async with self._condition:
            if slot not in self._slots or not slot.busy:
                return
            slot.busy = False
            self._condition.notify(1)

    async def recognize(self, slot: WorkerSlot, image_bytes: bytes) -> str:
        """Run OCR on ``image_bytes`` with the engine of a held slot."""
        if slot not in self._slots or not slot.busy:
            raise OCRPoolError(f"Slot {slot.index} is not held by the caller")
        return await asyncio.to_thread(slot.engine.recognize, image_bytes)

    async def shutdown(self) -> None:
        """Dispose every engine and reset the pool to uninitialized."""
        async with self._condition:
            slots, self._slots = self._slots, []
            self._initialized = False
            # Waiters wake up and see the pool is gone.
            self._condition.notify_all()

        for slot in slots:
            try:
                slot.engine.close()
            except Exception as e:
                self.logger.error("ocr_engine_close_error", slot=slot.index, error=str(e))

        if slots:
            self.logger.info("ocr_pool_shutdown", workers=len(slots))
