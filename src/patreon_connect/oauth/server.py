"""Local OAuth callback server for desktop/CLI logins.

Starts a temporary HTTP server on the host/port of the configured
``redirect_uri`` to receive Patreon's redirect with the authorization code.
"""

from __future__ import annotations

import asyncio
import html
import logging
import socket
import threading
import webbrowser
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Callable, Iterable
from urllib.parse import parse_qs, urlparse

from ..errors import AuthError
from .client import OAuthClient, generate_state, verify_state
from .tokens import OAuthToken, Scope

logger = logging.getLogger(__name__)


@dataclass
class CallbackResult:
    """Result from OAuth callback."""

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None

    @property
    def success(self) -> bool:
        return self.code is not None and self.error is None


_PAGE = """<!DOCTYPE html>
<html>
<head><title>{title}</title></head>
<body style="font-family: sans-serif; text-align: center; margin-top: 15vh;">
<h1>{title}</h1>
<p>{message}</p>
</body>
</html>
"""


class OAuthCallbackHandler(BaseHTTPRequestHandler):
    """HTTP handler for the OAuth redirect."""

    # Set per server by OAuthCallbackServer
    callback_server: "OAuthCallbackServer"

    def log_message(self, format, *args):
        logger.debug("callback server: " + format, *args)

    def do_GET(self):
        parsed = urlparse(self.path)
        server = self.callback_server

        if parsed.path == "/favicon.ico":
            self._send(204, "")
            return

        if parsed.path == "/" and server.authorization_url:
            self.send_response(302)
            self.send_header("Location", server.authorization_url)
            self.send_header("Content-Length", "0")
            self.end_headers()
            return

        if parsed.path != server.callback_path:
            self._send(404, _PAGE.format(title="Not Found", message="Unknown path."))
            return

        params = parse_qs(parsed.query)
        result = CallbackResult(
            code=params.get("code", [None])[0],
            state=params.get("state", [None])[0],
            error=params.get("error", [None])[0],
            error_description=params.get("error_description", [None])[0],
        )
        server.set_result(result)

        if result.success:
            self._send(
                200,
                _PAGE.format(
                    title="Authorization Successful",
                    message="You can close this window and return to the terminal.",
                ),
            )
        else:
            message = html.escape(result.error_description or result.error or "Authorization failed.")
            self._send(400, _PAGE.format(title="Authorization Failed", message=message))

    def _send(self, status: int, body: str):
        payload = body.encode("utf-8")
        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(payload)))
        self.end_headers()
        if payload:
            self.wfile.write(payload)


class OAuthCallbackServer:
    """Local server for handling OAuth callbacks.

    Usage:
        async with OAuthCallbackServer(port=8080) as server:
            result = await server.wait_for_callback_async(timeout=300)
    """

    def __init__(
        self,
        port: int = 8080,
        host: str = "localhost",
        callback_path: str = "/callback",
    ):
        self.port = port
        self.host = host
        self.callback_path = callback_path or "/"
        self.authorization_url: str | None = None
        self._result: CallbackResult | None = None
        self._received = threading.Event()
        self._lock = threading.Lock()
        self._server: HTTPServer | None = None
        self._thread: threading.Thread | None = None

    @classmethod
    def for_redirect_uri(cls, redirect_uri: str) -> "OAuthCallbackServer":
        """Listen where ``redirect_uri`` points (e.g. http://localhost:8080/callback)."""
        parsed = urlparse(redirect_uri)
        if parsed.scheme != "http" or not parsed.hostname:
            raise ValueError(f"Local login needs an http:// redirect URI, got {redirect_uri!r}")
        return cls(
            port=parsed.port or 80,
            host=parsed.hostname,
            callback_path=parsed.path or "/",
        )

    @property
    def callback_url(self) -> str:
        return f"http://{self.host}:{self.port}{self.callback_path}"

    @property
    def result(self) -> CallbackResult | None:
        return self._result

    def set_result(self, result: CallbackResult) -> None:
        # First callback wins; later hits can't replace the code being exchanged
        with self._lock:
            if self._received.is_set():
                logger.debug("Ignoring repeated OAuth callback")
                return
            self._result = result
            self._received.set()

    def _find_free_port(self) -> int:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind(("", 0))
            return s.getsockname()[1]

    def start(self, find_free_port: bool = False) -> int:
        """Start the callback server.

        Args:
            find_free_port: If True, pick a free port when the configured one is taken

        Returns:
            The port the server is running on
        """
        self._result = None
        self._received.clear()

        handler = type(
            "BoundOAuthCallbackHandler",
            (OAuthCallbackHandler,),
            {"callback_server": self},
        )

        try:
            self._server = HTTPServer((self.host, self.port), handler)
        except OSError:
            if not find_free_port:
                raise
            self.port = self._find_free_port()
            self._server = HTTPServer((self.host, self.port), handler)

        self.port = self._server.server_address[1]
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        logger.debug("OAuth callback server listening on %s", self.callback_url)
        return self.port

    def stop(self):
        if self._server:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread:
            self._thread.join(timeout=1)
            self._thread = None

    def wait_for_callback(self, timeout: float = 300) -> CallbackResult:
        """Block until the redirect arrives.

        Raises:
            TimeoutError: If no callback received within timeout
        """
        if not self._received.wait(timeout):
            raise TimeoutError(f"No OAuth callback received within {timeout} seconds")
        return self._result

    async def wait_for_callback_async(self, timeout: float = 300) -> CallbackResult:
        """Async version of wait_for_callback."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if self._received.is_set():
                return self._result
            await asyncio.sleep(0.1)

        raise TimeoutError(f"No OAuth callback received within {timeout} seconds")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, *args):
        self.stop()

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, *args):
        self.stop()


async def run_oauth_flow(
    client: OAuthClient,
    scopes: Iterable[Scope | str] = (Scope.IDENTITY,),
    timeout: float = 300,
    open_browser: bool = True,
    on_authorization_url: Callable[[str], None] | None = None,
) -> OAuthToken:
    """Run the complete login flow on this machine.

    1. Start a callback server at the client's redirect URI
    2. Open the browser at the authorization URL
    3. Wait for the user to authorize
    4. Check ``state`` and exchange the code for tokens

    The token is returned, not stored.

    Raises:
        AuthError: If the user denies access or the state does not match
        TimeoutError: If the user doesn't complete the flow in time
    """
    scopes = list(scopes)
    state = generate_state()
    auth_url = client.authorization_url(scopes, state=state)

    async with OAuthCallbackServer.for_redirect_uri(client.config.redirect_uri) as server:
        server.authorization_url = auth_url
        if on_authorization_url:
            on_authorization_url(auth_url)
        if open_browser:
            webbrowser.open(auth_url)

        logger.info("Waiting for OAuth callback on %s", server.callback_url)
        result = await server.wait_for_callback_async(timeout=timeout)

    if not result.success:
        raise AuthError(
            result.error_description or result.error or "Authorization failed",
            status_code=400,
            error_code=result.error,
            description=result.error_description,
        )

    if not verify_state(state, result.state):
        raise AuthError(
            "State mismatch - possible CSRF attack",
            status_code=400,
            error_code="state_mismatch",
        )

    return await client.exchange_code(result.code, scopes=scopes)


__all__ = [
    "CallbackResult",
    "OAuthCallbackHandler",
    "OAuthCallbackServer",
    "run_oauth_flow",
]
