"""Gateway session -- one long-lived websocket to the agent gateway.

Lifecycle::

    disconnected -> connecting -> authenticating -> authenticated
         ^                                              |
         +------------- (close / error, delay) ---------+

Each connection attempt resolves the token again, opens the socket, sends a
single ``connect`` request and then feeds every inbound event through the
classifier and publisher. Message handling is synchronous, so events are
classified and published strictly in arrival order.

On any disconnect an "idle / reconnecting" status is published straight
away and one reconnect is scheduled after a fixed delay. A missing token is
the only fatal condition: ``run()`` raises instead of retrying forever.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any, Callable

import websockets
from websockets.exceptions import WebSocketException

from src.bridge.classifier import IDLE, classify
from src.bridge.credentials import MissingGatewayTokenError, resolve_gateway_token
from src.bridge.publisher import StatusPublisher

logger = logging.getLogger("orion.bridge.session")

DISCONNECTED = "disconnected"
CONNECTING = "connecting"
AUTHENTICATING = "authenticating"
AUTHENTICATED = "authenticated"

DEFAULT_GATEWAY_URL = "ws://127.0.0.1:18789"
DEFAULT_RECONNECT_DELAY = 5.0
DEFAULT_OPEN_TIMEOUT = 10.0

CONNECT_REQUEST_ID = "connect-1"
PROTOCOL_VERSION = 3
CLIENT_ID = "cli"
CLIENT_VERSION = "1.0.0"
USER_AGENT = f"clawdbot-cli/{CLIENT_VERSION}"

CONNECTED_DESCRIPTION = "Bridge connected"
RECONNECTING_DESCRIPTION = "Bridge reconnecting..."


def client_platform() -> str:
    return "macos" if sys.platform == "darwin" else sys.platform


def build_connect_request(token: str) -> dict[str, Any]:
    """Build the handshake request sent as the first frame of every connection."""
    return {
        "type": "req",
        "id": CONNECT_REQUEST_ID,
        "method": "connect",
        "params": {
            "minProtocol": PROTOCOL_VERSION,
            "maxProtocol": PROTOCOL_VERSION,
            "client": {
                "id": CLIENT_ID,
                "version": CLIENT_VERSION,
                "platform": client_platform(),
                "mode": "cli",
            },
            "role": "operator",
            "scopes": ["operator.read"],
            "caps": [],
            "commands": [],
            "permissions": {},
            "auth": {"token": token},
            "locale": "en-US",
            "userAgent": USER_AGENT,
        },
    }


def _excerpt(payload: Any, limit: int) -> str:
    if payload is None:
        return ""
    try:
        text = json.dumps(payload)
    except (TypeError, ValueError):
        text = repr(payload)
    return text[:limit]


class GatewaySession:
    """Owns the gateway connection and its reconnect loop."""

    def __init__(
        self,
        publisher: StatusPublisher,
        url: str = DEFAULT_GATEWAY_URL,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        open_timeout: float = DEFAULT_OPEN_TIMEOUT,
        token_resolver: Callable[[], str | None] | None = None,
        connect: Callable[..., Any] | None = None,
    ) -> None:
        self.publisher = publisher
        self.url = url
        self.reconnect_delay = reconnect_delay
        self.open_timeout = open_timeout
        self._resolve_token = token_resolver or resolve_gateway_token
        self._connect_fn = connect or websockets.connect

        self.state = DISCONNECTED
        self._ws: Any = None
        self._connect_task: asyncio.Task | None = None
        self._reconnect_handle: asyncio.TimerHandle | None = None
        self._handshake_rejected = False
        self._stopping = False
        self._done: asyncio.Event | None = None
        self._fatal: BaseException | None = None

    @classmethod
    def from_config(cls, cfg: dict[str, Any], publisher: StatusPublisher) -> "GatewaySession":
        gw = cfg["gateway"]
        return cls(
            publisher,
            url=gw["url"],
            reconnect_delay=gw["reconnect_delay"],
            open_timeout=gw.get("open_timeout", DEFAULT_OPEN_TIMEOUT),
        )

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    # ── Lifecycle ────────────────────────────────────────────────────────────

    async def run(self) -> None:
        """Connect and keep reconnecting until ``shutdown()`` is called.

        Raises MissingGatewayTokenError when no token can be found.
        """
        self._done = asyncio.Event()
        self._stopping = False
        self._fatal = None
        self._begin_connect()
        await self._done.wait()
        if self._fatal is not None:
            raise self._fatal

    async def shutdown(self) -> None:
        """Close the connection and cancel any pending reconnect."""
        self._stopping = True
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

        ws = self._ws
        if ws is not None:
            try:
                await ws.close()
            except (OSError, WebSocketException) as e:
                logger.debug("Error while closing gateway socket: %s", e)

        task = self._connect_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        self.state = DISCONNECTED
        logger.info("Gateway session stopped")
        self._finish()

    def _finish(self) -> None:
        if self._done is not None:
            self._done.set()

    def _begin_connect(self) -> None:
        # The reconnect guard clears only once the next attempt actually starts.
        self._reconnect_handle = None
        if self._stopping:
            return
        self._connect_task = asyncio.get_running_loop().create_task(self._connect())

    def schedule_reconnect(self) -> bool:
        """Schedule one reconnect after the fixed delay. Returns False if one is pending."""
        if self._stopping or self._reconnect_handle is not None:
            return False
        logger.info("Reconnecting in %gs...", self.reconnect_delay)
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(self.reconnect_delay, self._begin_connect)
        return True

    async def _connect(self) -> None:
        self.state = CONNECTING
        token = self._resolve_token()
        if not token:
            logger.error(
                "No gateway token found. Set OPENCLAW_GATEWAY_TOKEN "
                "(or CLAWDBOT_GATEWAY_TOKEN) or check ~/.openclaw/openclaw.json."
            )
            self.state = DISCONNECTED
            self._fatal = MissingGatewayTokenError("No gateway token found")
            self._finish()
            return

        logger.info("Connecting to %s...", self.url)
        self._handshake_rejected = False
        reason = "connection closed"
        try:
            async with self._connect_fn(self.url, open_timeout=self.open_timeout) as ws:
                self._ws = ws
                self.state = AUTHENTICATING
                logger.info("Connected! Sending handshake...")
                await ws.send(json.dumps(build_connect_request(token)))
                async for raw in ws:
                    self.handle_message(raw)
                    if self._handshake_rejected:
                        reason = "handshake rejected"
                        break
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            reason = f"{type(e).__name__}: {e}"
            logger.error("Gateway connection error: %s", e)
        except Exception as e:
            reason = f"{type(e).__name__}: {e}"
            logger.exception("Unexpected gateway session failure")
        finally:
            self._ws = None
            self.state = DISCONNECTED

        self._on_disconnect(reason)

    def _on_disconnect(self, reason: str) -> None:
        if self._stopping:
            return
        logger.warning("Disconnected from gateway (%s)", reason)
        try:
            self.publisher.publish(IDLE, None, RECONNECTING_DESCRIPTION)
        except OSError:
            logger.exception("Could not publish reconnecting status")
        self.schedule_reconnect()

    # ── Inbound messages ─────────────────────────────────────────────────────

    def handle_message(self, raw: str | bytes) -> None:
        """Process one inbound frame. Never raises."""
        try:
            self._dispatch(raw)
        except Exception:
            logger.exception("Failed to handle gateway message")

    def _dispatch(self, raw: str | bytes) -> None:
        try:
            if isinstance(raw, (bytes, bytearray)):
                raw = raw.decode("utf-8")
            msg = json.loads(raw)
        except ValueError as e:
            logger.warning("Parse error: %s", e)
            return
        if not isinstance(msg, dict):
            logger.warning("Ignoring non-object gateway message: %s", _excerpt(msg, 80))
            return

        kind = msg.get("type")
        if kind == "res" and msg.get("id") == CONNECT_REQUEST_ID:
            self._handle_handshake(msg)
        elif kind == "event":
            self._handle_event(msg.get("event"), msg.get("payload"))

    def _handle_handshake(self, msg: dict[str, Any]) -> None:
        if msg.get("ok"):
            self.state = AUTHENTICATED
            logger.info("Authenticated! Listening for events...")
            self.publisher.publish(IDLE, None, CONNECTED_DESCRIPTION)
        else:
            logger.error("Gateway handshake rejected: %s", msg.get("error"))
            self._handshake_rejected = True

    def _handle_event(self, event: Any, payload: Any) -> None:
        if self.state != AUTHENTICATED:
            logger.debug("Ignoring event %r before authentication", event)
            return

        name = event if isinstance(event, str) else ""
        if name == "agent":
            stream = payload.get("stream") if isinstance(payload, dict) else None
            data = payload.get("data") if isinstance(payload, dict) else None
            phase = data.get("phase") if isinstance(data, dict) else None
            logger.debug("Event: agent stream=%s phase=%s", stream, phase or "-")
        elif "exec" in name or "approval" in name:
            logger.info("Event: %s %s", name, _excerpt(payload, 200))
        else:
            logger.debug("Event: %s %s", name, _excerpt(payload, 80))

        transition = classify(event, payload)
        if transition is not None:
            self.publisher.publish(*transition)
