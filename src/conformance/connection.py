"""
Transport to the rippled node under test.

A Connection owns one websocket client. Cases get a fresh Connection each and
release it at teardown; nothing about the transport is shared between cases.
"""
import asyncio
import logging
from contextlib import asynccontextmanager

import httpx
from websockets.exceptions import WebSocketException
from xrpl.asyncio.clients import AsyncWebsocketClient
from xrpl.constants import XRPLException
from xrpl.models.requests.request import Request
from xrpl.models.response import Response

import conformance.constants as C
from conformance.errors import LedgerConnectionError

log = logging.getLogger("conformance.connection")

_TRANSPORT_ERRORS = (OSError, WebSocketException, XRPLException)


class Connection:
    def __init__(self, url: str, *, request_timeout: float = C.RPC_TIMEOUT) -> None:
        self.url = url
        self.request_timeout = request_timeout
        self._client = AsyncWebsocketClient(url)

    def is_connected(self) -> bool:
        return self._client.is_open()

    async def connect(self) -> None:
        log.debug("CONNECTING... %s", self.url)
        try:
            await asyncio.wait_for(self._client.open(), timeout=self.request_timeout)
        except TimeoutError as e:
            raise LedgerConnectionError(f"timed out connecting to {self.url}") from e
        except _TRANSPORT_ERRORS as e:
            raise LedgerConnectionError(f"cannot connect to {self.url}: {e}") from e
        log.debug("CONNECTED... %s", self.url)

    async def disconnect(self) -> None:
        if not self._client.is_open():
            return
        try:
            await self._client.close()
        except _TRANSPORT_ERRORS as e:
            log.warning("Error closing connection to %s: %s", self.url, e)

    async def request(self, req: Request, *, timeout: float | None = None) -> Response:
        """Send one request and wait for its response.

        Error responses from the node are returned as-is; only transport
        failures raise.
        """
        if not self._client.is_open():
            raise LedgerConnectionError(f"not connected to {self.url} (request {req.method})")
        t = timeout or self.request_timeout
        try:
            return await asyncio.wait_for(self._client.request(req), timeout=t)
        except TimeoutError as e:
            raise LedgerConnectionError(f"{req.method} timed out after {t:.1f}s") from e
        except _TRANSPORT_ERRORS as e:
            raise LedgerConnectionError(f"{req.method} failed: {e}") from e


@asynccontextmanager
async def open_connection(url: str, *, request_timeout: float = C.RPC_TIMEOUT):
    connection = Connection(url, request_timeout=request_timeout)
    await connection.connect()
    try:
        yield connection
    finally:
        await connection.disconnect()


async def probe_node(
    url: str,
    max_retries: int = 30,
    retry_delay: float = 2.0,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> dict:
    """Probe the rippled JSON-RPC endpoint with retries until it responds.

    Args:
        url: RPC endpoint URL
        max_retries: Maximum number of attempts
        retry_delay: Seconds to wait between attempts

    Returns:
        The server_info result of the first successful probe.
    """
    payload = {"method": "server_info", "params": [{}]}

    for attempt in range(1, max_retries + 1):
        try:
            async with httpx.AsyncClient(timeout=C.RPC_TIMEOUT, transport=transport) as http:
                r = await http.post(url, json=payload)
                r.raise_for_status()
                log.info(f"RPC endpoint responding (attempt {attempt}/{max_retries})")
                return r.json().get("result", {})
        except (httpx.HTTPError, ValueError) as e:
            if attempt < max_retries:
                log.info(f"RPC not ready yet (attempt {attempt}/{max_retries}): {e.__class__.__name__} - retrying in {retry_delay}s...")
                await asyncio.sleep(retry_delay)
            else:
                log.error(f"RPC failed after {max_retries} attempts")
                raise LedgerConnectionError(f"{url} did not answer server_info: {e}") from e
    raise LedgerConnectionError(f"{url} was never probed (max_retries={max_retries})")
