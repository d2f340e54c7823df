"""Global pytest configuration."""

from __future__ import annotations

import asyncio
import inspect
import os

import pytest

from phishradar.analyzer.metrics import metrics

# Keep a developer config dir out of the tests.
os.environ.setdefault("CONFIG_DIR", "./tests/_no_config")


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):  # type: ignore[override]
    """Run coroutine tests on a fresh event loop."""
    if not inspect.iscoroutinefunction(pyfuncitem.obj):
        return None
    testargs = {name: pyfuncitem.funcargs[name] for name in pyfuncitem._fixtureinfo.argnames}
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        loop.run_until_complete(pyfuncitem.obj(**testargs))
    finally:
        loop.run_until_complete(loop.shutdown_asyncgens())
        asyncio.set_event_loop(None)
        loop.close()
    return True


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "asyncio: mark test as requiring asyncio support")


@pytest.fixture(autouse=True)
def _reset_metrics():
    """Each test starts from empty scoring metrics."""
    metrics.reset()
    yield
    metrics.reset()
