"""CAPTCHA solving by OCR consensus."""

from .consensus import (
    ConsensusCaptchaSolver,
    FetchImage,
    is_valid_image,
    normalize_captcha_text,
)

__all__ = [
    "ConsensusCaptchaSolver",
    "FetchImage",
    "is_valid_image",
    "normalize_captcha_text",
]
