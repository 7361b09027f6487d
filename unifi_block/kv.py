"""
Consul key-value store client.

Stores named lists of match strings as JSON text under plain keys. Talks to
the Consul HTTP API (``/v1/kv/<key>``) directly; configuration follows the
Consul CLI environment variables.
"""

import json
import logging
import os
from typing import List, Optional
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS = "127.0.0.1:8500"


class KVStoreError(Exception):
    """Key-value store connection, read, write or delete failure."""


def _truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


class KV:
    """Simplified list-valued key-value store on top of HashiCorp Consul."""

    def __init__(
        self,
        address: Optional[str] = None,
        token: Optional[str] = None,
        scheme: Optional[str] = None,
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the Consul connection settings.

        Unset arguments fall back to CONSUL_HTTP_ADDR, CONSUL_HTTP_TOKEN and
        CONSUL_HTTP_SSL, then to http://127.0.0.1:8500 without a token.

        Args:
            address: host:port or full URL of the Consul agent
            token: ACL token sent as X-Consul-Token
            scheme: "http" or "https"; ignored when address carries a scheme
            timeout: Per-request timeout in seconds
            session: Pre-built requests.Session to use
        """
        address = (address or os.environ.get("CONSUL_HTTP_ADDR", "")).strip() or DEFAULT_ADDRESS
        if scheme is None:
            scheme = "https" if _truthy(os.environ.get("CONSUL_HTTP_SSL")) else "http"

        if address.startswith(("http://", "https://")):
            self.base_url = address.rstrip("/")
        else:
            self.base_url = f"{scheme}://{address.rstrip('/')}"

        self.token = token if token is not None else (os.environ.get("CONSUL_HTTP_TOKEN", "").strip() or None)
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        if self.token:
            self.session.headers.update({"X-Consul-Token": self.token})

    def _key_url(self, key: str) -> str:
        return f"{self.base_url}/v1/kv/{quote(key)}"

    def _request(self, method: str, key: str, **kwargs) -> requests.Response:
        url = self._key_url(key)
        try:
            logger.debug(f"Consul {method} {url}")
            return self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise KVStoreError(f"cannot reach key-value store at {self.base_url}: {e}") from e

    def get(self, key: str) -> Optional[List[str]]:
        """
        Return the list stored at key, or None when the key does not exist.

        Raises:
            KVStoreError: on connection failure, an unexpected status, or a
                value that is not a JSON list of strings.
        """
        response = self._request("GET", key, params={"raw": ""})
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise KVStoreError(f"get {key!r}: HTTP {response.status_code} {response.text.strip()}")

        if not response.text.strip():
            return None
        try:
            items = json.loads(response.text)
        except json.JSONDecodeError as e:
            raise KVStoreError(f"get {key!r}: invalid JSON value: {e}") from e

        if items is None:
            return None
        if not isinstance(items, list) or not all(isinstance(item, str) for item in items):
            raise KVStoreError(f"get {key!r}: expected a JSON list of strings")
        return items

    def put(self, key: str, values: List[str]) -> None:
        """Replace the list stored at key."""
        data = json.dumps(list(values)).encode("utf-8")
        response = self._request("PUT", key, data=data)
        if response.status_code != 200 or response.text.strip() == "false":
            raise KVStoreError(f"put {key!r}: HTTP {response.status_code} {response.text.strip()}")

    def delete(self, key: str) -> None:
        """Remove the record at key. Deleting a missing key is not an error."""
        response = self._request("DELETE", key)
        if response.status_code != 200:
            raise KVStoreError(f"delete {key!r}: HTTP {response.status_code} {response.text.strip()}")

    def close(self) -> None:
        self.session.close()
