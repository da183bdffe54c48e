"""HTTP transport for the repository.

Synchronous ``requests``-based client with one session per thread, per-host
credentials and an optional proxy table. Async callers reach it through
:func:`jcr_mcp_server.core.async_utils.run_sync_limited`.
"""

import base64
import html
import json
import logging
import re
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import requests

from ..config import Config
from .constants import CRX_ROOT, PROP
from .errors import FetchError
from .values import format_value

logger = logging.getLogger(__name__)

# (connect, read) timeouts in seconds
REQUEST_TIMEOUT = (10, 60)

_JSON_ACCEPT = {"Accept": "application/json"}
_HTML_MESSAGE_PATTERNS = (
    re.compile(r'<div id="Message">([^<]+)</div>'),
    re.compile(r"<h1>([^<]+)</h1>"),
)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BasicCredential:
    username: str
    password: str


@dataclass(frozen=True)
class TokenCredential:
    access_token: str


@dataclass(frozen=True)
class CookieCredential:
    """Value of the ``login-token`` cookie issued by the repository."""

    cookie: str


Credential = BasicCredential | TokenCredential | CookieCredential

# Called with a host (``scheme://authority``) when a request is rejected
# with 401; returns a new credential, or None to give up.
CredentialProvider = Callable[[str], Credential | None]


def get_auth_header(credential: Credential) -> dict[str, str]:
    """Build the request header that carries *credential*."""
    match credential:
        case TokenCredential(access_token=token):
            return {"Authorization": "Bearer " + token}
        case CookieCredential(cookie=cookie):
            return {"Cookie": "login-token=" + cookie}
        case BasicCredential(username=username, password=password):
            token = base64.b64encode(
                f"{username}:{password}".encode("utf-8")
            ).decode("ascii")
            return {"Authorization": "Basic " + token}
    raise TypeError(f"Unsupported credential type: {type(credential).__name__}")


def get_host_from_url(url: str) -> str:
    """Return ``scheme://authority`` of *url*."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}"


def split_url(url: str) -> tuple[str, str]:
    """Split a node URL into ``(host, path)``; the path is at least ``/``."""
    parts = urlsplit(url)
    return f"{parts.scheme}://{parts.netloc}", parts.path or "/"


def make_url(host: str, path: str) -> str:
    """Join a host and an absolute repository path."""
    return host.rstrip("/") + "/" + path.lstrip("/")


def join_url(url: str, name: str) -> str:
    """URL of the child *name* of the node at *url*."""
    return url.rstrip("/") + "/" + name


def extract_error_message(body: str) -> str:
    """Pull a human-readable message out of a server error page.

    Sling answers JSON requests with ``{"error": {"message": ...}}`` and
    everything else with an HTML status page.
    """
    try:
        data = json.loads(body)
    except ValueError:
        data = None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])

    for pattern in _HTML_MESSAGE_PATTERNS:
        match = pattern.search(body)
        if match:
            return html.unescape(match.group(1))
    return "Unknown error"


# ---------------------------------------------------------------------------
# Proxies
# ---------------------------------------------------------------------------


class ProxyTable:
    """Maps host names to HTTP proxies.

    Keys are host names where ``*`` matches one or more characters, e.g.
    ``*.corp.example.com``. The first matching entry wins. ``localhost`` and
    ``127.0.0.1`` are never proxied.
    """

    def __init__(self, entries: Mapping[str, str] | None = None):
        self._entries: list[tuple[re.Pattern, str]] = []
        self._cache: dict[str, str | None] = {
            "localhost": None,
            "127.0.0.1": None,
        }
        for pattern, proxy_url in (entries or {}).items():
            if not urlsplit(proxy_url).hostname:
                logger.warning(
                    "Ignoring invalid proxy URL for %s: %s", pattern, proxy_url
                )
                continue
            regex = "^" + re.escape(pattern).replace(r"\*", ".+") + "$"
            self._entries.append((re.compile(regex), proxy_url))

    def get(self, hostname: str) -> str | None:
        if hostname not in self._cache:
            self._cache[hostname] = next(
                (url for regex, url in self._entries if regex.match(hostname)),
                None,
            )
        return self._cache[hostname]


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


def _iter_fields(
    fields: Mapping[str, Any] | Iterable[tuple[str, Any]],
) -> Iterable[tuple[str, Any]]:
    items = fields.items() if isinstance(fields, Mapping) else fields
    for name, value in items:
        if isinstance(value, (list, tuple)):
            for item in value:
                yield name, item
        else:
            yield name, value


class JcrClient:
    def __init__(
        self,
        config: Config,
        credential_provider: CredentialProvider | None = None,
    ):
        self.config = config
        self.credential_provider = credential_provider
        self.proxies = ProxyTable(config.proxies)
        self._thread_local = threading.local()
        self._auth_lock = threading.Lock()
        self._auth_headers: dict[str, dict[str, str]] = {}

        default: Credential
        if config.access_token:
            default = TokenCredential(config.access_token)
        else:
            default = BasicCredential(config.username, config.password)
        for host in config.hosts:
            self.set_credential(host, default)

    @property
    def session(self) -> requests.Session:
        """Current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.verify = not self.config.insecure
        return session

    def set_credential(self, host: str, credential: Credential) -> None:
        """Use *credential* for every request to *host*."""
        with self._auth_lock:
            self._auth_headers[host.rstrip("/")] = get_auth_header(credential)

    def _get_auth_header(self, host: str) -> dict[str, str]:
        with self._auth_lock:
            header = self._auth_headers.get(host)
        if header is None and self.credential_provider is not None:
            credential = self.credential_provider(host)
            if credential is not None:
                self.set_credential(host, credential)
                return get_auth_header(credential)
        return header or {}

    def _refresh_credential(self, host: str, used: dict[str, str]) -> bool:
        """Return True if a request rejected with 401 is worth one retry."""
        with self._auth_lock:
            current = self._auth_headers.get(host)
        if current is not None and current != used:
            # Another thread already replaced the credential
            return True
        if self.credential_provider is None:
            return False
        credential = self.credential_provider(host)
        if credential is None:
            return False
        self.set_credential(host, credential)
        return True

    def _send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        **kwargs: Any,
    ) -> requests.Response:
        hostname = urlsplit(url).hostname or ""
        proxy = self.proxies.get(hostname)
        if proxy:
            kwargs["proxies"] = {"http": proxy, "https": proxy}
        logger.debug("fetch: %s %s", method, url)
        return self._get_session().request(
            method, url, headers=headers, timeout=REQUEST_TIMEOUT, **kwargs
        )

    def fetch(
        self,
        url: str,
        method: str = "GET",
        headers: Mapping[str, str] | None = None,
        **kwargs: Any,
    ) -> bytes:
        """Perform a request and return the response body.

        Args:
            url: Absolute URL.
            method: HTTP method.
            headers: Extra request headers.
            **kwargs: Passed to ``requests.Session.request`` (``params``,
                ``files``, ``data``).

        Returns:
            Raw response body.

        Raises:
            FetchError: If the server answers with a non-2xx status. For
                5xx responses the message is taken from the error page.
            requests.RequestException: On connection failures.
        """
        host = get_host_from_url(url)
        auth = self._get_auth_header(host)
        response = self._send(method, url, {**(headers or {}), **auth}, **kwargs)

        if response.status_code == 401 and self._refresh_credential(host, auth):
            auth = self._get_auth_header(host)
            response = self._send(
                method, url, {**(headers or {}), **auth}, **kwargs
            )

        if not 200 <= response.status_code < 300:
            body = response.text
            message = None
            if response.status_code >= 500:
                message = extract_error_message(body)
                if self.config.verbose_logging:
                    logger.error(
                        "%s %s returned %d: %s",
                        method,
                        url,
                        response.status_code,
                        body,
                    )
            raise FetchError(url, response.status_code, body, message)
        return response.content

    def fetch_json(self, url: str, **kwargs: Any) -> Any:
        """Fetch *url* and decode the body as JSON.

        A body that is not JSON is returned as ``{"body": text}``.
        """
        headers = {**_JSON_ACCEPT, **kwargs.pop("headers", {})}
        data = self.fetch(url, headers=headers, **kwargs)
        try:
            return json.loads(data)
        except ValueError:
            return {"body": data.decode("utf-8", errors="replace")}

    def post(
        self,
        url: str,
        fields: Mapping[str, Any] | Iterable[tuple[str, Any]],
        files: Iterable[tuple[str, tuple[str, bytes, str]]] | None = None,
    ) -> Any:
        """Send a multipart form post and return the decoded JSON answer.

        Args:
            url: Target URL.
            fields: Form fields; a mapping (list values repeat the field) or
                a sequence of ``(name, value)`` pairs when order or repeated
                names matter. Non-string values are formatted as repository
                values (``true``, ``42``, ISO dates).
            files: ``(field, (filename, content, mime_type))`` entries.
        """
        parts: list[tuple[str, tuple[Any, ...]]] = [
            (name, (None, v if isinstance(v, str) else format_value(v)))
            for name, v in _iter_fields(fields)
        ]
        parts.extend(files or ())
        return self.fetch_json(url, method="POST", files=parts)

    def validate_connection(self, host: str) -> str:
        """Fetch the repository root node of *host*.

        Returns the root node's primary type (``rep:root`` on Oak).
        """
        data = self.fetch_json(f"{host.rstrip('/')}{CRX_ROOT}/.0.json")
        return str(data.get(PROP.jcr_primary_type, "")) if isinstance(data, dict) else ""
