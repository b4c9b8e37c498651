"""Local HTTP form that collects the one-time verification code.

Routes:
- ``GET /`` - code entry form (``?error=...`` shows an error banner)
- ``GET /success`` - confirmation page
- ``POST /submitmfa`` - form-encoded ``code`` field

Each submission is handed to :meth:`ChallengeServer.await_code` together
with a future.  The request stays open until the login flow calls
:meth:`ChallengeServer.report_outcome`, then redirects the browser to
``/success`` or back to the form.
"""

from __future__ import annotations

import asyncio
import contextlib
import html
import logging
import socket
from dataclasses import dataclass

from aiohttp import web

from pykwikset._constants import CHALLENGE_GRACE_PERIOD

_logger = logging.getLogger(__name__)

_INDEX_HTML = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Kwikset verification</title></head>
<body>
<h1>Kwikset verification</h1>
{error}
<p>Enter the code that was sent to your phone.</p>
<form method="post" action="/submitmfa">
<input type="text" name="code" autocomplete="one-time-code" inputmode="numeric" autofocus>
<button type="submit">Verify</button>
</form>
</body>
</html>
"""

_ERROR_HTML = '<p class="error" style="color: #b00020">Verification failed: {message}. Try again.</p>'

_SUCCESS_HTML = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Kwikset verification</title></head>
<body>
<h1>Verified</h1>
<p>Your session has been saved. You can close this page.</p>
</body>
</html>
"""


@dataclass
class _Submission:
    code: str
    outcome: asyncio.Future[bool]


def _local_address() -> str:
    """Best-effort LAN address to show in the "open this URL" log line."""
    with contextlib.closing(socket.socket(socket.AF_INET, socket.SOCK_DGRAM)) as sock:
        try:
            sock.connect(("10.255.255.255", 1))
            return str(sock.getsockname()[0])
        except OSError:
            return "127.0.0.1"


class ChallengeServer:
    """Single-use web form for one interactive login."""

    def __init__(
        self,
        *,
        host: str = "0.0.0.0",
        grace_period: float = CHALLENGE_GRACE_PERIOD,
    ) -> None:
        self._host = host
        self._grace_period = grace_period
        self._submissions: asyncio.Queue[_Submission] = asyncio.Queue()
        self._pending: _Submission | None = None
        self._close_task: asyncio.Task[None] | None = None

        self.app = web.Application()
        self._setup_routes()
        self._runner: web.AppRunner | None = None
        self._port: int = 0

    def _setup_routes(self) -> None:
        self.app.router.add_get("/", self._handle_index)
        self.app.router.add_get("/success", self._handle_success)
        self.app.router.add_post("/submitmfa", self._handle_submit)

    @property
    def port(self) -> int:
        """Actual bound port (useful when started on port 0)."""
        return self._port

    @property
    def is_running(self) -> bool:
        return self._runner is not None

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _handle_index(self, request: web.Request) -> web.Response:
        error = request.query.get("error")
        banner = _ERROR_HTML.format(message=html.escape(error)) if error else ""
        return web.Response(text=_INDEX_HTML.format(error=banner), content_type="text/html")

    async def _handle_success(self, request: web.Request) -> web.Response:
        return web.Response(text=_SUCCESS_HTML, content_type="text/html")

    async def _handle_submit(self, request: web.Request) -> web.Response:
        form = await request.post()
        code = str(form.get("code", "")).strip()
        if not code:
            raise web.HTTPFound("/?error=missing+code")

        submission = _Submission(code=code, outcome=asyncio.get_running_loop().create_future())
        await self._submissions.put(submission)
        accepted = await submission.outcome

        if accepted:
            raise web.HTTPFound("/success")
        raise web.HTTPFound("/?error=bad+code")

    # ------------------------------------------------------------------
    # Handshake with the login flow
    # ------------------------------------------------------------------

    async def await_code(self) -> str:
        """Suspend until the user submits a code.

        Every returned code must be answered with :meth:`report_outcome`
        before the next one is awaited.
        """
        if self._pending is not None:
            raise RuntimeError("Previous code is still awaiting an outcome")
        submission = await self._submissions.get()
        self._pending = submission
        return submission.code

    def report_outcome(self, success: bool) -> None:
        """Release the browser request waiting on the last code."""
        submission = self._pending
        self._pending = None
        if submission is None:
            raise RuntimeError("No submitted code is awaiting an outcome")
        if not submission.outcome.done():
            submission.outcome.set_result(success)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, port: int) -> None:
        """Bind and start serving.  The port is validated by the caller."""
        self._runner = web.AppRunner(self.app, access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, port)
        await site.start()

        addresses = self._runner.addresses
        self._port = int(addresses[0][1]) if addresses else port
        _logger.info("Verification code form listening on http://%s:%d", _local_address(), self._port)

    def close_after(self, delay: float | None = None) -> None:
        """Stop the server in the background once *delay* seconds have passed."""
        if self._close_task is not None:
            return
        wait = self._grace_period if delay is None else delay
        self._close_task = asyncio.create_task(self._close_later(wait))

    async def _close_later(self, delay: float) -> None:
        await asyncio.sleep(delay)
        await self._shutdown()

    async def stop(self) -> None:
        """Stop immediately, failing any submission still waiting on an outcome."""
        task = self._close_task
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self._shutdown()

    async def wait_closed(self) -> None:
        """Wait for a :meth:`close_after` shutdown to finish."""
        if self._close_task is not None:
            await self._close_task

    async def _shutdown(self) -> None:
        pending = [self._pending] if self._pending is not None else []
        self._pending = None
        while not self._submissions.empty():
            pending.append(self._submissions.get_nowait())
        for submission in pending:
            if not submission.outcome.done():
                submission.outcome.set_result(False)

        runner = self._runner
        self._runner = None
        if runner is not None:
            await runner.cleanup()
            _logger.info("Verification code form closed")
