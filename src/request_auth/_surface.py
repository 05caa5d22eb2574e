"""Authorization surfaces: where the provider's login page is shown.

A surface opens the authorization URL and reports the provider redirect back
as a ``RedirectMessage``. ``EmbeddedFrameSurface`` delegates rendering to a
host-provided view; ``PopupWindowSurface`` opens a separate browser window and
captures the redirect on an ephemeral loopback server.
"""

import asyncio
import contextlib
import html
import inspect
import logging
import webbrowser
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import urlsplit

from typing_extensions import Protocol

from .models.redirect import RedirectMessage

logger = logging.getLogger(__name__)

CallbackHandler = Callable[[RedirectMessage], Any]


class AuthorizationSurface(Protocol):
    redirect_timeout: float

    async def open(self, url: str) -> None: ...

    def on_callback(self, handler: CallbackHandler) -> Callable[[], None]:
        """Subscribe to redirect messages. Returns an unsubscribe callable."""
        ...

    async def close(self) -> None: ...


class CallbackSurface:
    """Base class keeping callback subscribers and parsing redirects."""

    redirect_timeout: float = 300.0

    def __init__(self, redirect_timeout: float | None = None) -> None:
        if redirect_timeout is not None:
            self.redirect_timeout = redirect_timeout

        self._handlers: list[CallbackHandler] = []

    def on_callback(self, handler: CallbackHandler) -> Callable[[], None]:
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return _unsubscribe

    def deliver(self, message: RedirectMessage) -> None:
        for handler in list(self._handlers):
            handler(message)

    def deliver_url(self, url: str) -> None:
        """Report the URL the provider redirected to."""
        self.deliver(RedirectMessage.from_url(url))

    def deliver_payload(self, payload: dict[str, Any]) -> None:
        """Report a postMessage-style payload relayed by the callback page."""
        self.deliver(RedirectMessage.model_validate(payload))

    async def open(self, url: str) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        pass


async def _maybe_await(result: Awaitable[Any] | Any) -> Any:
    if inspect.isawaitable(result):
        return await result

    return result


class EmbeddedFrameSurface(CallbackSurface):
    """Shows the authorization page inside a host-provided embedded view.

    The host calls ``deliver_url`` (or ``deliver_payload``) when the frame
    navigates to the redirect URI. Providers that refuse to be framed never
    redirect, so the short timeout doubles as a "blocked" signal.

    Args:
        render: Called with the authorization URL to show it.
        dispose: Called to tear the view down once the flow is over.
    """

    redirect_timeout = 30.0

    def __init__(
        self,
        render: Callable[[str], Awaitable[Any] | Any],
        dispose: Callable[[], Awaitable[Any] | Any] | None = None,
        redirect_timeout: float | None = None,
    ) -> None:
        super().__init__(redirect_timeout)
        self._render = render
        self._dispose = dispose
        self._is_open = False

    @property
    def is_open(self) -> bool:
        return self._is_open

    async def open(self, url: str) -> None:
        await _maybe_await(self._render(url))
        self._is_open = True

    async def close(self) -> None:
        if not self._is_open:
            return

        self._is_open = False

        if self._dispose is not None:
            await _maybe_await(self._dispose())


_CALLBACK_HTML = """<!DOCTYPE html>
<html>
<head><title>{title}</title></head>
<body><h1>{title}</h1><p>{message}</p></body>
</html>"""

# Fragments never reach the server; this page sends them back as a query string
_FRAGMENT_RELAY_HTML = """<!DOCTYPE html>
<html>
<head><title>Completing authorization</title></head>
<body>
<p>Completing authorization&hellip;</p>
<script>
  if (window.location.hash.length > 1) {
    window.location.replace(
      window.location.pathname + "?" + window.location.hash.slice(1) + "&_fragment=1"
    );
  }
</script>
</body>
</html>"""


class PopupWindowSurface(CallbackSurface):
    """Opens the authorization page in a separate browser window.

    The redirect is captured by a loopback HTTP server listening on the host,
    port and path of ``redirect_uri``, which must therefore point at this
    machine (e.g. ``http://127.0.0.1:8765/oauth/callback``).
    """

    redirect_timeout = 300.0

    def __init__(
        self,
        redirect_uri: str,
        open_browser: Callable[[str], Any] | None = None,
        redirect_timeout: float | None = None,
    ) -> None:
        super().__init__(redirect_timeout)

        parts = urlsplit(redirect_uri)

        self.redirect_uri = redirect_uri
        self.host = parts.hostname or "127.0.0.1"
        self.port = parts.port or 80
        self.callback_path = parts.path or "/"
        self._open_browser = open_browser or webbrowser.open
        self._server: asyncio.AbstractServer | None = None

    async def open(self, url: str) -> None:
        if self._server is None:
            self._server = await asyncio.start_server(
                self._handle_connection, self.host, self.port
            )
            logger.debug("Callback server listening for %s", self.redirect_uri)

        self._open_browser(url)

    async def close(self) -> None:
        if self._server is None:
            return

        self._server.close()
        await self._server.wait_closed()
        self._server = None

    async def _handle_connection(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        try:
            request_line = await reader.readline()

            # Drain the request headers
            while await reader.readline() not in (b"\r\n", b"\n", b""):
                pass

            parts = request_line.decode("latin-1").split(" ")

            if len(parts) < 2 or parts[0] != "GET":
                self._write_response(writer, 405, "Method Not Allowed")
                return

            target = parts[1]
            path, _, query = target.partition("?")

            if path != self.callback_path:
                self._write_response(writer, 404, "Not Found")
                return

            if not query:
                self._write_response(writer, 200, _FRAGMENT_RELAY_HTML)
                return

            message = self._parse_callback(query)
            self.deliver(message)

            if message.error:
                body = _CALLBACK_HTML.format(
                    title="Authorization failed",
                    message=html.escape(message.error_description or message.error),
                )
            else:
                body = _CALLBACK_HTML.format(
                    title="Authorization complete",
                    message="You can close this window.",
                )

            self._write_response(writer, 200, body)
        except (ConnectionError, UnicodeDecodeError) as e:
            logger.debug("Callback connection failed: %s", e)
        finally:
            with contextlib.suppress(ConnectionError):
                await writer.drain()

            writer.close()

            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()

    def _parse_callback(self, query: str) -> RedirectMessage:
        url = f"{self.redirect_uri}?{query}"
        message = RedirectMessage.from_url(url)

        if message.raw.get("_fragment") != "1":
            return message

        # Relayed fragment: the token parameters really came from the fragment
        fragment = "&".join(
            part for part in query.split("&") if not part.startswith("_fragment=")
        )

        return RedirectMessage.from_url(f"{self.redirect_uri}#{fragment}")

    def _write_response(
        self, writer: asyncio.StreamWriter, status: int, body: str
    ) -> None:
        encoded = body.encode("utf-8")
        reason = {200: "OK", 404: "Not Found", 405: "Method Not Allowed"}[status]

        writer.write(
            (
                f"HTTP/1.1 {status} {reason}\r\n"
                "Content-Type: text/html; charset=utf-8\r\n"
                f"Content-Length: {len(encoded)}\r\n"
                "Cache-Control: no-store\r\n"
                "X-Content-Type-Options: nosniff\r\n"
                "Connection: close\r\n"
                "\r\n"
            ).encode("latin-1")
            + encoded
        )
