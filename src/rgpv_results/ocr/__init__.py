"""OCR engines and the worker pool that shares them across pipelines."""

from .engine import CAPTCHA_ALPHABET, IOCREngine, TesseractEngine
from .pool import (
    OCRPoolError,
    OCRPoolInitializationError,
    OCRPoolNotInitializedError,
    OCRStats,
    OCRWorkerPool,
    WorkerSlot,
)

__all__ = [
    "CAPTCHA_ALPHABET",
    "IOCREngine",
    "TesseractEngine",
    "OCRPoolError",
    "OCRPoolInitializationError",
    "OCRPoolNotInitializedError",
    "OCRStats",
    "OCRWorkerPool",
    "WorkerSlot",
]
