# tests/test_health.py

from __future__ import annotations

import httpx
import pytest

from backup_keeper.tasks.health import HttpHealthProbe


@pytest.mark.asyncio
async def test_empty_url_is_always_healthy() -> None:
    assert await HttpHealthProbe("").check() is True
    assert await HttpHealthProbe(None).check() is True


@pytest.mark.asyncio
@pytest.mark.parametrize(("status", "expected"), [(200, True), (204, True), (503, False), (404, False)])
async def test_status_code_decides_health(status, expected) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(status))
    async with httpx.AsyncClient(transport=transport) as client:
        probe = HttpHealthProbe("http://app.test/health", client=client)
        assert await probe.check() is expected


@pytest.mark.asyncio
async def test_transport_error_is_unhealthy() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await HttpHealthProbe("http://app.test/health", client=client).check() is False
