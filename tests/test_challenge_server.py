from __future__ import annotations

import asyncio

import aiohttp
import pytest

from pykwikset.challenge import ChallengeServer


async def _submit(http: aiohttp.ClientSession, base_url: str, code: str) -> tuple[int, str]:
    async with http.post(f"{base_url}/submitmfa", data={"code": code}, allow_redirects=False) as resp:
        return resp.status, resp.headers.get("Location", "")


async def _started(grace_period: float = 0.2) -> tuple[ChallengeServer, str]:
    server = ChallengeServer(host="127.0.0.1", grace_period=grace_period)
    await server.start(0)
    return server, f"http://127.0.0.1:{server.port}"


@pytest.mark.asyncio
async def test_form_and_error_banner() -> None:
    server, base_url = await _started()
    try:
        async with aiohttp.ClientSession() as http:
            async with http.get(f"{base_url}/") as resp:
                page = await resp.text()
            async with http.get(f"{base_url}/?error=bad+code") as resp:
                error_page = await resp.text()
            async with http.get(f"{base_url}/?error=<script>") as resp:
                escaped_page = await resp.text()
    finally:
        await server.stop()

    assert 'action="/submitmfa"' in page
    assert "Verification failed" not in page
    assert "Verification failed: bad code" in error_page
    assert "<script>" not in escaped_page
    assert "&lt;script&gt;" in escaped_page


@pytest.mark.asyncio
async def test_rejected_code_redirects_back_to_form_and_waits_again() -> None:
    server, base_url = await _started()
    try:
        async with aiohttp.ClientSession() as http:
            first = asyncio.create_task(_submit(http, base_url, "111111"))
            assert await asyncio.wait_for(server.await_code(), 5) == "111111"
            assert not first.done()
            server.report_outcome(False)
            assert await first == (302, "/?error=bad+code")

            second = asyncio.create_task(_submit(http, base_url, " 222222 "))
            assert await asyncio.wait_for(server.await_code(), 5) == "222222"
            server.report_outcome(True)
            assert await second == (302, "/success")
    finally:
        await server.stop()

    assert not server.is_running


@pytest.mark.asyncio
async def test_missing_code_is_not_forwarded() -> None:
    server, base_url = await _started()
    try:
        async with aiohttp.ClientSession() as http:
            assert await _submit(http, base_url, "") == (302, "/?error=missing+code")
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(server.await_code(), 0.05)
    finally:
        await server.stop()


@pytest.mark.asyncio
async def test_server_stays_up_for_grace_period_after_success() -> None:
    server, base_url = await _started(grace_period=0.2)
    async with aiohttp.ClientSession() as http:
        submit = asyncio.create_task(_submit(http, base_url, "123456"))
        await asyncio.wait_for(server.await_code(), 5)
        server.report_outcome(True)
        server.close_after()
        assert await submit == (302, "/success")

        async with http.get(f"{base_url}/success") as resp:
            assert resp.status == 200
            assert "Verified" in await resp.text()

    await asyncio.wait_for(server.wait_closed(), 5)
    assert not server.is_running


def test_outcome_without_pending_code() -> None:
    server = ChallengeServer(host="127.0.0.1")
    with pytest.raises(RuntimeError):
        server.report_outcome(True)
