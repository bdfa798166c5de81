"""
OAuth Callback Server.
Short-lived local HTTP server that catches the OAuth redirect callback.
"""
import threading
import urllib.parse
from concurrent.futures import ThreadPoolExecutor
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Callable, Optional, Tuple

from .errors import RedirectError, CallbackTimeoutError
from utils import setup_logger


logger = setup_logger(__name__)


SUCCESS_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Spotify Authentication</title>
</head>
<body style="font-family: Arial; text-align: center; padding: 50px;">
    <h1 style="color: #1DB954;">Spotify Connection was Successful</h1>
    <p>You can close this window and return to your terminal.</p>
</body>
</html>
"""

ERROR_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Spotify Authentication</title>
</head>
<body style="font-family: Arial; text-align: center; padding: 50px;">
    <h1 style="color: #E74C3C;">Authentication Unsuccessful</h1>
    <p>Please restart the program and try again.</p>
</body>
</html>
"""


class OAuthCallbackHandler(BaseHTTPRequestHandler):
    """HTTP request handler for OAuth callback."""

    # Socket timeout so idle browser pre-connections cannot pin a worker
    timeout = 10

    def do_GET(self):
        """Handle GET request (OAuth callback)."""
        listener = self.server.listener
        parsed_path = urllib.parse.urlparse(self.path)

        if parsed_path.path == '/favicon.ico':
            self.send_response(404)
            self.send_header('Content-Length', '0')
            self.end_headers()
            return

        query_params = urllib.parse.parse_qs(parsed_path.query)
        _, error, first = listener.settle(query_params)

        # The page is on the wire before the waiting caller is released
        try:
            if error is None:
                self._write_page(200, SUCCESS_HTML)
            else:
                self._write_page(400, ERROR_HTML)
        finally:
            if first:
                listener.release()

    def _write_page(self, status: int, html: str) -> None:
        body = html.encode('utf-8')
        self.send_response(status)
        self.send_header('Content-Type', 'text/html; charset=utf-8')
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        self.wfile.write(body)
        self.wfile.flush()

    def log_message(self, format, *args):
        """Route server logging through our logger."""
        logger.debug("Callback server: " + format % args)


class PooledHTTPServer(HTTPServer):
    """HTTPServer that dispatches requests to a fixed-size worker pool."""

    def __init__(self, server_address, handler_class, max_workers: int = 5):
        super().__init__(server_address, handler_class)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='callback')

    def process_request(self, request, client_address):
        self._executor.submit(self._process_request_worker, request, client_address)

    def _process_request_worker(self, request, client_address):
        try:
            self.finish_request(request, client_address)
        except Exception:
            self.handle_error(request, client_address)
        finally:
            self.shutdown_request(request)

    def server_close(self):
        super().server_close()
        self._executor.shutdown(wait=False)


class OAuthCallbackServer:
    """
    Temporary HTTP server to catch OAuth redirect.

    The server starts listening on construction. The first redirect decides
    the outcome: a ``code`` parameter releases ``get_auth_code()`` with that
    code; anything else is answered with an error page and makes
    ``get_auth_code()`` raise ``RedirectError``. Call ``destroy()`` once
    afterwards (or use the server as a context manager) to free the port.
    """

    MAX_WORKERS = 5

    def __init__(
        self,
        host: str = '0.0.0.0',
        port: int = 8080,
        expected_state: Optional[str] = None,
        on_error: Optional[Callable[[RedirectError], None]] = None
    ):
        """
        Initialize and start the callback server.

        Args:
            host: Interface to bind (must match the registered redirect URI)
            port: Port to bind; 0 picks a free port
            expected_state: OAuth state the redirect must echo back, if any
            on_error: Hook called from the handler after a malformed redirect

        Raises:
            OSError: If the port cannot be bound
        """
        self.host = host
        self.expected_state = expected_state
        self.on_error = on_error

        self._done = threading.Event()
        self._lock = threading.Lock()
        self._code: Optional[str] = None
        self._error: Optional[RedirectError] = None
        self._decided = False
        self._destroyed = False

        logger.debug(f"Starting callback server on {host}:{port}")
        self._server = PooledHTTPServer((host, port), OAuthCallbackHandler, self.MAX_WORKERS)
        self._server.listener = self
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name='callback-server',
            daemon=True
        )
        self._thread.start()

    @classmethod
    def from_redirect_uri(cls, redirect_uri: str, **kwargs) -> 'OAuthCallbackServer':
        """
        Create a callback server listening where the redirect URI points.

        Args:
            redirect_uri: Registered redirect URI (e.g., http://localhost:8080)
        """
        parsed = urllib.parse.urlparse(redirect_uri)
        return cls(parsed.hostname or '0.0.0.0', parsed.port or 8080, **kwargs)

    @property
    def port(self) -> int:
        """Port the server is actually bound to."""
        return self._server.server_address[1]

    def _interpret(self, query_params: dict) -> Tuple[Optional[str], Optional[RedirectError]]:
        code = query_params.get('code', [''])[0]
        if not code:
            error = query_params.get('error', ['missing_code'])[0]
            return None, RedirectError(f"Authorization redirect carried no code: {error}", error)

        if self.expected_state is not None:
            state = query_params.get('state', [None])[0]
            if state != self.expected_state:
                return None, RedirectError("Authorization redirect state mismatch", 'state_mismatch')

        return code, None

    def settle(self, query_params: dict) -> Tuple[Optional[str], Optional[RedirectError], bool]:
        """
        Decide the outcome of a redirect, unless an earlier one already did.

        The waiter is not released here; the handler calls ``release()``
        once the page for the outcome has been written.

        Returns:
            Tuple of (code, error, first): the recorded outcome, where exactly
            one of code and error is set, and whether this redirect decided it
        """
        with self._lock:
            if self._decided:
                return self._code, self._error, False
            self._code, self._error = self._interpret(query_params)
            self._decided = True
            return self._code, self._error, True

    def release(self) -> None:
        """Release the waiter and run the abort hook for an error outcome."""
        self._done.set()

        if self._error is None:
            logger.info("Received valid response from callback")
            return

        logger.error(f"Received fatal response from callback: {self._error}")
        if self.on_error is not None:
            self.on_error(self._error)

    def get_auth_code(self, timeout: Optional[float] = None) -> str:
        """
        Block until the redirect arrives.

        Args:
            timeout: Maximum wait time in seconds (None waits indefinitely)

        Returns:
            Authorization code

        Raises:
            CallbackTimeoutError: If no redirect arrived in time
            RedirectError: If the redirect carried no usable code
        """
        logger.info("Waiting for request to callback server")
        if not self._done.wait(timeout):
            raise CallbackTimeoutError(f"No authorization redirect received within {timeout}s")

        if self._error is not None:
            raise self._error

        logger.info("Passing access code from callback")
        return self._code

    def destroy(self) -> None:
        """Stop the server and release the port."""
        with self._lock:
            if self._destroyed:
                return
            self._destroyed = True

        logger.info("Destroying the callback server")
        self._server.shutdown()
        self._server.server_close()
        self._thread.join(timeout=2.0)

    def __enter__(self) -> 'OAuthCallbackServer':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.destroy()
