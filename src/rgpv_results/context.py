"""Run context: every long-lived object of one run, built in one place."""

from dataclasses import dataclass, field
from typing import Callable, Optional

import aiohttp

from .batch.cache import CompletionCache
from .captcha.consensus import ConsensusCaptchaSolver
from .config.logger import logger
from .config.settings import ScraperConfig, load_config
from .connectors.rgpv.http import create_http_session
from .connectors.rgpv.interfaces import IResultStore
from .connectors.rgpv.pipeline import ResultPipeline
from .connectors.rgpv.submitter import FormSubmitter
from .connectors.rgpv.workflow import SessionWorkflow
from .ocr.engine import IOCREngine, TesseractEngine
from .ocr.pool import OCRWorkerPool
from .storage.json_store import JsonResultStore


@dataclass
class RunContext:
    """Objects shared by every pipeline of a run.

    Use as an async context manager, or call :meth:`close` when done, to
    shut the OCR pool down and close the HTTP session.
    """
    config: ScraperConfig
    http: aiohttp.ClientSession
    pool: OCRWorkerPool
    solver: ConsensusCaptchaSolver
    workflow: SessionWorkflow
    submitter: FormSubmitter
    pipeline: ResultPipeline
    store: IResultStore
    cache: CompletionCache
    owns_http: bool = field(default=True, repr=False)

    async def close(self) -> None:
        await self.pool.shutdown()
        if self.owns_http and not self.http.closed:
            await self.http.close()
        logger.debug("run_context_closed")

    async def __aenter__(self) -> "RunContext":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def create_context(
    config: Optional[ScraperConfig] = None,
    store: Optional[IResultStore] = None,
    engine_factory: Callable[[], IOCREngine] = TesseractEngine,
    http: Optional[aiohttp.ClientSession] = None,
) -> RunContext:
    """Build a run context from a config.

    Must be called from a running event loop, since it creates the aiohttp
    session.

    Args:
        config: Run configuration. Loaded from the environment if not given.
        store: Result store. A JsonResultStore over ``config.results_dir`` if
            not given.
        engine_factory: Factory for OCR engines.
        http: Existing client session to use; it is not closed by the context.

    Returns:
        The assembled RunContext.
    """
    config = config or load_config()
    store = store or JsonResultStore(config.results_dir)

    owns_http = http is None
    if http is None:
        http = create_http_session(config.request_timeout)

    pool = OCRWorkerPool(engine_factory=engine_factory)
    solver = ConsensusCaptchaSolver(
        pool,
        ocr_concurrency=config.ocr_concurrency,
        sample_delay=config.sample_delay,
        debug_dir=config.debug_dir,
    )
    workflow = SessionWorkflow(http, config.base_url, config.program_value)
    submitter = FormSubmitter(http, config.base_url, debug_dir=config.debug_dir)
    pipeline = ResultPipeline(
        workflow,
        solver,
        submitter,
        max_retries=config.max_retries,
        max_samples=config.max_samples,
        early_stop_votes=config.early_stop_votes,
    )

    return RunContext(
        config=config,
        http=http,
        pool=pool,
        solver=solver,
        workflow=workflow,
        submitter=submitter,
        pipeline=pipeline,
        store=store,
        cache=CompletionCache(store),
        owns_http=owns_http,
    )
