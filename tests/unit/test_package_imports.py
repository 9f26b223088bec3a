"""Every package imports cleanly from its root."""

import importlib

import pytest


@pytest.mark.parametrize("module", [
    "rgpv_results",
    "rgpv_results.config",
    "rgpv_results.ocr",
    "rgpv_results.captcha",
    "rgpv_results.connectors.rgpv",
    "rgpv_results.storage",
    "rgpv_results.batch",
    "rgpv_results.export",
    "rgpv_results.context",
    "rgpv_results.main",
    "rgpv_results.mcp_server",
    "rgpv_results.mcp_server.tools",
])
def test_module_imports(module):
    imported = importlib.import_module(module)

    for name in getattr(imported, "__all__", []):
        assert hasattr(imported, name), f"{module} exports missing name {name}"


def test_batch_exports():
    import rgpv_results.batch as batch

    assert set(batch.__all__) >= {"BatchOrchestrator", "CompletionCache", "OutageBreaker"}
    assert not hasattr(batch, "BreakerStatus")
