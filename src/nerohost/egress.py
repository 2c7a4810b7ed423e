"""Host side of the guest HTTP capability.

Guests never open sockets. They hand a request record to the host, which
checks it against the egress policy, performs it with httpx and hands back a
response record. Every failure becomes an ``EgressError`` whose message is
returned to the guest as an ``err`` value.
"""

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse

import httpx
import pluggy
from rich.console import Console

from nerohost.config import Settings
from nerohost.errors import EgressError
from nerohost.state import ResourceTable

console = Console()

ALLOWED_METHODS = {"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"}


@dataclass
class HttpRequest:
    """Outbound request as issued by a guest."""

    method: str
    url: str
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: Optional[bytes] = None

    @property
    def host(self) -> str:
        return (urlparse(self.url).hostname or "").lower()


@dataclass
class HttpResponse:
    """Response handed back to a guest."""

    status: int
    url: str
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""


class HttpContext:
    """
    Mediated HTTP egress for one extension instance.

    Runs inside the worker thread executing the guest call, so it uses a
    synchronous httpx client.
    """

    def __init__(
        self,
        settings: Settings,
        client: Optional[httpx.Client] = None,
        plugin_manager: Optional[pluggy.PluginManager] = None,
    ):
        """
        Initialize HTTP context.

        Args:
            settings: Egress policy (schemes, blocked hosts, limits)
            client: Optional preconfigured httpx client (for testing)
            plugin_manager: Optional plugin manager consulted before each request
        """
        self.settings = settings
        self.plugin_manager = plugin_manager
        self.client = client or httpx.Client(timeout=settings.http_timeout)
        self.metrics = {"requests": 0, "denied": 0, "failures": 0}

    def check(self, request: HttpRequest) -> None:
        """
        Apply the egress policy to a request.

        Raises:
            EgressError: If the request must not leave the host
        """
        method = request.method.upper()
        if method not in ALLOWED_METHODS:
            raise EgressError(f"method not allowed: {request.method}")

        scheme = urlparse(request.url).scheme.lower()
        if scheme not in self.settings.http_allowed_schemes:
            raise EgressError(f"scheme not allowed: {scheme or '<none>'}")

        host = request.host
        if not host:
            raise EgressError(f"missing host in url: {request.url}")
        blocked = {h.lower() for h in self.settings.http_blocked_hosts}
        if host in blocked:
            raise EgressError(f"host not allowed: {host}")

        if self.plugin_manager is not None:
            allowed = self.plugin_manager.hook.nerohost_allow_request(request=request)
            if allowed is False:
                raise EgressError(f"request denied by host plugin: {request.url}")

    def _enforce(self, request: HttpRequest) -> None:
        try:
            self.check(request)
        except EgressError:
            self.metrics["denied"] += 1
            raise

    def send(self, request: HttpRequest) -> HttpResponse:
        """
        Perform a guest request.

        Redirects are followed one hop at a time, up to ``http_max_redirects``,
        and every hop passes the same policy as the original request.

        Args:
            request: The guest's request

        Returns:
            HttpResponse with the full (size-limited) body

        Raises:
            EgressError: On policy denial, transport failure or oversized body
        """
        self._enforce(request)

        self.metrics["requests"] += 1
        headers = list(request.headers)
        if not any(name.lower() == "user-agent" for name, _ in headers):
            headers.append(("User-Agent", self.settings.http_user_agent))

        try:
            outgoing = self.client.build_request(
                request.method.upper(), request.url, headers=headers, content=request.body
            )
        except httpx.InvalidURL as e:
            raise self._failure(request.url, e) from e

        for _ in range(self.settings.http_max_redirects + 1):
            result = self._exchange(outgoing)
            if isinstance(result, HttpResponse):
                return result
            outgoing = result
            self._enforce(HttpRequest(method=outgoing.method, url=str(outgoing.url)))
            if self.settings.enable_debug:
                console.print(f"[dim]→ Guest request redirected to {outgoing.url}[/dim]")

        self.metrics["failures"] += 1
        raise EgressError(f"too many redirects (limit {self.settings.http_max_redirects})")

    def _exchange(self, outgoing: httpx.Request) -> HttpResponse | httpx.Request:
        """Send one hop. Returns the response, or the next request for a redirect."""
        try:
            response = self.client.send(outgoing, stream=True, follow_redirects=False)
            try:
                if response.next_request is not None:
                    return response.next_request
                return HttpResponse(
                    status=response.status_code,
                    url=str(response.url),
                    headers=list(response.headers.multi_items()),
                    body=self._read_body(response),
                )
            finally:
                response.close()
        except EgressError:
            self.metrics["failures"] += 1
            raise
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise self._failure(str(outgoing.url), e) from e

    def _read_body(self, response: httpx.Response) -> bytes:
        limit = self.settings.http_max_response_bytes
        body = bytearray()
        for chunk in response.iter_bytes():
            body.extend(chunk)
            if len(body) > limit:
                raise EgressError(f"response body exceeds {limit} bytes")
        return bytes(body)

    def _failure(self, url: str, e: Exception) -> EgressError:
        self.metrics["failures"] += 1
        if self.settings.enable_debug:
            console.print(f"[dim]→ Guest request failed: {url} ({e})[/dim]")
        return EgressError(f"{type(e).__name__}: {e}")

    @staticmethod
    def new_headers(table: ResourceTable, entries: list[tuple[str, str]]) -> int:
        """Store a header list in the resource table and return its handle."""
        return table.push([(str(name), str(value)) for name, value in entries])

    def close(self):
        """Close the underlying client."""
        self.client.close()
