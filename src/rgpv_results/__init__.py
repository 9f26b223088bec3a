"""RGPV result connector.

Fetches grading results from the RGPV result site: ASP.NET session workflow,
CAPTCHA solving by OCR consensus, and concurrent batch processing with a
completion cache.
"""

__version__ = "0.1.0"
