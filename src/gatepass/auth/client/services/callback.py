"""Local callback listener for the OAuth 2.0 redirect.

Serves a single Starlette route with uvicorn on a socket bound by the
listener itself, validates the returned state and forwards the
authorization code through a single-use handoff.
"""

from __future__ import annotations

import asyncio
import html
import ipaddress
import logging
import socket

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse
from starlette.routing import Route

from gatepass.auth.client.models.errors import ListenerBindError
from gatepass.auth.client.models.flow import CallbackResult
from gatepass.auth.client.primitives.handoff import Handoff

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/oauth_callback"

SUCCESS_PAGE = (
    "<html><body><h3>Authentication succeeded. "
    "You can close this window.</h3></body></html>"
)
INVALID_STATE_PAGE = "<html><body><h3>Invalid state parameter.</h3></body></html>"
MISSING_PARAMS_PAGE = (
    "<html><body><h3>Missing code or state parameter.</h3></body></html>"
)
ERROR_PAGE = "<html><body><h3>Authorization failed: {error}</h3></body></html>"


def parse_listen_address(address: str) -> tuple[str, int]:
    """Parse ``host:port`` (or ``[v6host]:port``) into a socket address.

    The host must be an IP literal.

    Raises:
        ListenerBindError: If the address is not a valid socket address
    """
    host, sep, port_text = address.strip().rpartition(":")
    if not sep or not host:
        raise ListenerBindError(f"Invalid listen address: {address!r}")

    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]

    try:
        ipaddress.ip_address(host)
        port = int(port_text)
    except ValueError as e:
        raise ListenerBindError(f"Invalid listen address: {address!r}") from e

    if not 0 <= port <= 65535:
        raise ListenerBindError(f"Invalid listen port: {port}")

    return host, port


class CallbackListener:
    """Transient HTTP listener for the provider redirect.

    Accepts ``GET /oauth_callback?code=...&state=...``. Only a callback whose
    state equals ``expected_state`` is delivered; everything else gets an
    explanatory page and the listener keeps waiting. Use as an async context
    manager so the socket is released on every exit path.
    """

    def __init__(
        self,
        address: str,
        expected_state: str,
        handoff: Handoff[CallbackResult],
        path: str = CALLBACK_PATH,
        shutdown_timeout: float = 2.0,
    ):
        self._host, self._port = parse_listen_address(address)
        self._expected_state = expected_state
        self._handoff = handoff
        self._shutdown_timeout = shutdown_timeout

        self._app = Starlette(
            routes=[Route(path, self._handle_callback, methods=["GET"])]
        )
        self._socket: socket.socket | None = None
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task | None = None
        self._stopping = False

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        """Bound port, resolved by ``start()`` when 0 was requested."""
        return self._port

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Bind the socket and start serving in a background task.

        Raises:
            ListenerBindError: If the address cannot be bound or the server
                fails to start
        """
        self._socket = self._bind()
        self._port = self._socket.getsockname()[1]

        config = uvicorn.Config(
            app=self._app,
            log_config=None,
            log_level="warning",
            access_log=False,
            lifespan="off",
            timeout_graceful_shutdown=1,
        )
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._serve())

        # Wait until uvicorn accepts connections, or gave up during startup
        while not self._server.started and not self._task.done():
            await asyncio.sleep(0.01)

        if self._task.done():
            raise ListenerBindError(
                f"Callback listener failed to start on {self._host}:{self.port}"
            )

        logger.info(f"Callback listener started on {self._host}:{self.port}")

    async def stop(self) -> None:
        """Stop serving and release the socket. Safe to call repeatedly."""
        self._stopping = True
        task, self._task = self._task, None

        try:
            if task is not None and self._server is not None:
                self._server.should_exit = True
                try:
                    await asyncio.wait_for(task, timeout=self._shutdown_timeout)
                except asyncio.TimeoutError:
                    logger.warning("Callback listener did not stop in time; cancelled")
                for server in getattr(self._server, "servers", []):
                    server.close()
        finally:
            if self._socket is not None:
                self._socket.close()
                self._socket = None
                logger.debug(f"Callback listener released {self._host}:{self._port}")

    async def __aenter__(self) -> CallbackListener:
        try:
            await self.start()
        except BaseException:
            await self.stop()
            raise
        return self

    async def __aexit__(self, exc_type, exc_value, traceback) -> None:
        await self.stop()

    def _bind(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self._host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self._host, self._port))
        except OSError as e:
            sock.close()
            raise ListenerBindError(
                f"Could not bind callback listener on {self._host}:{self._port}: {e}"
            ) from e
        return sock

    async def _serve(self) -> None:
        try:
            await self._server.serve(sockets=[self._socket])
        except (Exception, SystemExit) as e:
            # uvicorn reports startup failures through sys.exit()
            logger.error(f"Callback listener failed: {e!r}")
        finally:
            if not self._stopping:
                # Serving ended on its own: nothing more will be delivered
                self._handoff.close()

    async def _handle_callback(self, request: Request) -> HTMLResponse:
        """Validate one provider redirect and deliver it if it matches."""
        params = request.query_params
        error = params.get("error")
        code = params.get("code")
        state = params.get("state")

        if error:
            logger.warning(
                f"Authorization server returned an error: {error} "
                f"({params.get('error_description', '')})"
            )
            return HTMLResponse(ERROR_PAGE.format(error=html.escape(error)))

        if not code or state is None:
            logger.warning("Callback is missing the code or state parameter")
            return HTMLResponse(MISSING_PARAMS_PAGE)

        if state != self._expected_state:
            logger.warning("Rejected callback with mismatched state parameter")
            return HTMLResponse(INVALID_STATE_PAGE)

        if self._handoff.deliver(CallbackResult(code=code, state=state)):
            logger.info("Received authorization code on callback listener")
        else:
            logger.debug("Authorization code already received; ignoring callback")

        return HTMLResponse(SUCCESS_PAGE)
