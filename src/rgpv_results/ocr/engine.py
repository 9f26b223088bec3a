"""OCR engines used by the worker pool.

The pool only depends on :class:`IOCREngine`; :class:`TesseractEngine` is the
production implementation, tuned for the result site's CAPTCHA (uppercase
letters and digits rendered as a single word).
"""

import io
from abc import ABC, abstractmethod

import pytesseract
from PIL import Image

CAPTCHA_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


class IOCREngine(ABC):
    """Interface for a single OCR engine instance.

    Implementations are blocking and CPU-bound; the pool runs them in a
    worker thread.
    """

    @abstractmethod
    def recognize(self, image_bytes: bytes) -> str:
        """Return the raw text recognized in an encoded image."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release any resources held by the engine."""
        pass


class TesseractEngine(IOCREngine):
    """Tesseract OCR restricted to the CAPTCHA alphabet.

    Construction fails if the Tesseract binary is not available, which is
    what the pool treats as an engine creation failure.
    """

    def __init__(
        self,
        lang: str = "eng",
        whitelist: str = CAPTCHA_ALPHABET,
        psm: int = 8,
    ):
        self.lang = lang
        # psm 8: treat the image as a single word
        self.config = (
            f"--psm {psm} "
            f"-c tessedit_char_whitelist={whitelist} "
            f"-c preserve_interword_spaces=0"
        )
        self.version = str(pytesseract.get_tesseract_version())

    def recognize(self, image_bytes: bytes) -> str:
        with Image.open(io.BytesIO(image_bytes)) as image:
            grayscale = image.convert("L")
            return pytesseract.image_to_string(
                grayscale,
                lang=self.lang,
                config=self.config,
            )

    def close(self) -> None:
        # pytesseract spawns one process per call; nothing stays open.
        pass
