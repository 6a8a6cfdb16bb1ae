"""
HTTP transport for talking to an ACME v1 server.

Every call returns a ``Response`` value carrying everything the workflow
needs from the round trip: body, status code, the server's next nonce, the
``Location`` header and the ``rel="up"`` links.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional
from urllib.parse import urljoin

import requests

from .errors import TransportError

logger = logging.getLogger(__name__)

USER_AGENT = "lesnek"


@dataclass(frozen=True)
class Response:
    """Result of one HTTP round trip."""

    body: bytes = b""
    status_code: int = 0
    nonce: Optional[str] = None
    location: Optional[str] = None
    links: List[str] = field(default_factory=list)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Parse the body as JSON, returning an empty dict for non-JSON bodies."""
        if not self.body:
            return {}
        try:
            return json.loads(self.body)
        except ValueError:
            return {}


def up_links(link_header: Optional[str]) -> List[str]:
    """Return the ``rel="up"`` URIs of a Link header, in header order."""
    if not link_header:
        return []
    return [
        link["url"]
        for link in requests.utils.parse_header_links(link_header)
        if link.get("rel") == "up"
    ]


class HttpTransport:
    """
    ``requests`` based transport bound to one CA base URL.

    Relative URIs (``/acme/new-reg``) are resolved against the base.
    """

    def __init__(self, ca_base: str, session: Optional[requests.Session] = None, timeout: float = 30):
        self.ca_base = ca_base.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)

    def resolve(self, uri: str) -> str:
        return urljoin(self.ca_base + "/", uri)

    def _request(self, method: str, uri: str, **kwargs) -> Response:
        url = self.resolve(uri)
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise TransportError(f"{method} {url} failed: {e}") from e

        location = resp.headers.get("Location")
        if location:
            location = urljoin(url, location)

        response = Response(
            body=resp.content,
            status_code=resp.status_code,
            nonce=resp.headers.get("Replay-Nonce"),
            location=location,
            links=[urljoin(url, link) for link in up_links(resp.headers.get("Link"))],
        )
        logger.debug(f"{method} {url} -> {response.status_code}")
        return response

    def get(self, uri: str) -> Response:
        return self._request("GET", uri)

    def post(self, uri: str, body: Any) -> Response:
        """POST a JSON-serializable body."""
        return self._request(
            "POST",
            uri,
            data=json.dumps(body),
            headers={"Content-Type": "application/json"},
        )

    def new_nonce(self) -> Response:
        """Unsigned round trip whose only purpose is a fresh Replay-Nonce."""
        return self._request("HEAD", "/directory")
