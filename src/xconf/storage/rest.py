"""Resource store backed by a database server's REST interface.

Collections and resources are addressed by appending their database path to
the REST base URL, e.g. ``http://localhost:8080/exist/rest`` + ``/db/system/config/db/books``.
A GET on a collection answers with an XML listing, a GET on a resource with its
content, and a PUT creates or replaces a resource (creating missing parent
collections on the server side).
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from typing import List

import httpx

from xconf.storage.base import StoreError

LOGGER = logging.getLogger(__name__)

EXIST_NS = "http://exist.sourceforge.net/NS/exist"


class RestCollection:
    def __init__(self, store: RestResourceStore, path: str) -> None:
        self.store = store
        self.path = path

    def get_resource(self, name: str) -> str | None:
        response = self.store.request("GET", f"{self.path}/{name}")
        if response.status_code == 404:
            return None
        return response.text

    def store_resource(self, name: str, content: str) -> None:
        self.store.request(
            "PUT",
            f"{self.path}/{name}",
            content=content.encode("utf-8"),
            headers={"Content-Type": "application/xml; charset=utf-8"},
        )
        LOGGER.debug("Stored %s/%s via REST", self.path, name)


class RestResourceStore:
    """Talks to a database server over its REST API."""

    def __init__(
        self,
        base_url: str,
        *,
        username: str | None = None,
        password: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        auth = (username, password or "") if username else None
        self._client = httpx.Client(
            base_url=self.base_url,
            auth=auth,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> RestResourceStore:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request, turning transport faults and server errors into StoreError.

        404 responses are returned to the caller, which decides what "missing" means.
        """
        url = "/" + path.strip("/")
        try:
            response = self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            raise StoreError(f"{method} {url} failed: {exc}") from exc
        if response.status_code == 404:
            return response
        if response.is_error:
            raise StoreError(f"{method} {url} returned HTTP {response.status_code}")
        return response

    def get_collection(self, path: str) -> RestCollection | None:
        path = "/" + path.strip("/")
        response = self.request("GET", path)
        if response.status_code == 404:
            return None
        return RestCollection(self, path)

    def create_collection(self, path: str) -> RestCollection:
        # Collections are created implicitly by the first PUT below them.
        return RestCollection(self, "/" + path.strip("/"))

    def list_collections(self, path: str = "/db") -> List[str]:
        """Return the child collections of ``path``."""
        path = "/" + path.strip("/")
        response = self.request("GET", path)
        if response.status_code == 404:
            return []
        try:
            root = ET.fromstring(response.content)
        except ET.ParseError as exc:
            raise StoreError(f"Unreadable collection listing for {path}: {exc}") from exc

        listing = root.find(f"{{{EXIST_NS}}}collection")
        if listing is None:
            return []
        return [
            f"{path}/{child.get('name')}"
            for child in listing.findall(f"{{{EXIST_NS}}}collection")
        ]
