"""Runtime configuration for the result connector.

Values come from environment variables (optionally loaded from a ``.env``
file) with the ``RGPV_`` prefix. Callers such as the CLI apply their own
overrides on top. Range validation is left to the caller.
"""

import os
from dataclasses import dataclass, fields, replace
from typing import Any, List, Optional

from dotenv import load_dotenv

DEFAULT_BASE_URL = "https://result.rgpv.ac.in/Result/"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


@dataclass
class ScraperConfig:
    """Options for one run of the connector.

    Attributes:
        base_url: Root of the result site; every page is resolved against it.
        program_value: Value posted for ``radlstProgram`` (24 is B.E.).
        prefix: Roll number prefix, e.g. ``0818CS23``.
        start: First 4-digit suffix of the roll range (inclusive).
        end: Last 4-digit suffix of the roll range (inclusive).
        semester: Semester requested on the result form.
        concurrency: Pipelines allowed to run at the same time.
        ocr_concurrency: OCR pool size and in-flight recognition ceiling.
        max_retries: Attempts per roll number.
        max_samples: CAPTCHA images read per consensus run.
        early_stop_votes: Votes that end a consensus run early.
        sample_delay: Seconds to wait between CAPTCHA samples.
        request_timeout: Total timeout in seconds for each HTTP request.
        results_dir: Directory holding one JSON file per fetched result.
        force_reprocess: Fetch roll numbers even if already cached.
        stop_on_service_unavailable: Stop starting new roll numbers once
            the site reports maintenance.
        debug: Enable debug logging.
        debug_dir: When set, CAPTCHA images are saved here.
    """
    base_url: str = DEFAULT_BASE_URL
    program_value: str = "24"
    prefix: str = "0818CS23"
    start: str = "1001"
    end: str = "1234"
    semester: str = "3"
    concurrency: int = 12
    ocr_concurrency: int = 2
    max_retries: int = 3
    max_samples: int = 7
    early_stop_votes: int = 3
    sample_delay: float = 1.0
    request_timeout: float = 30.0
    results_dir: str = "results"
    force_reprocess: bool = False
    stop_on_service_unavailable: bool = True
    debug: bool = False
    debug_dir: Optional[str] = None

    def roll_numbers(self) -> List[str]:
        """Expand the configured range into full roll numbers."""
        return [
            f"{self.prefix}{number:04d}"
            for number in range(int(self.start), int(self.end) + 1)
        ]

    def with_overrides(self, **overrides: Any) -> "ScraperConfig":
        """Return a copy with every non-None override applied."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise TypeError(f"Unknown config fields: {', '.join(sorted(unknown))}")
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_config(**overrides: Any) -> ScraperConfig:
    """Build a config from the environment, then apply overrides.

    Args:
        **overrides: Field values that win over the environment. ``None``
            values are ignored so argparse defaults can be passed through.

    Returns:
        The resulting ScraperConfig.
    """
    load_dotenv()

    config = ScraperConfig(
        base_url=os.getenv("RGPV_BASE_URL", DEFAULT_BASE_URL),
        program_value=os.getenv("RGPV_PROGRAM", "24"),
        prefix=os.getenv("RGPV_PREFIX", "0818CS23"),
        start=os.getenv("RGPV_START", "1001"),
        end=os.getenv("RGPV_END", "1234"),
        semester=os.getenv("RGPV_SEMESTER", "3"),
        concurrency=_env_int("RGPV_CONCURRENCY", 12),
        ocr_concurrency=_env_int("RGPV_OCR_CONCURRENCY", 2),
        max_retries=_env_int("RGPV_MAX_RETRIES", 3),
        max_samples=_env_int("RGPV_MAX_SAMPLES", 7),
        early_stop_votes=_env_int("RGPV_EARLY_STOP_VOTES", 3),
        sample_delay=_env_float("RGPV_SAMPLE_DELAY", 1.0),
        request_timeout=_env_float("RGPV_REQUEST_TIMEOUT", 30.0),
        results_dir=os.getenv("RGPV_RESULTS_DIR", "results"),
        force_reprocess=_env_bool("RGPV_FORCE", False),
        stop_on_service_unavailable=_env_bool("RGPV_STOP_ON_OUTAGE", True),
        debug=_env_bool("RGPV_DEBUG", False),
        debug_dir=os.getenv("RGPV_DEBUG_DIR") or None,
    )

    return config.with_overrides(**overrides)
