"""
UniFi controller session.

Manages authenticated communication with a UniFi OS controller: cookie and
CSRF token lifecycle, a single web login reused for every later call, and a
sticky error. The first failure poisons the session; every later failure is
prepended to the accumulated message, and once poisoned no further requests
are issued. Build a new Session to start over.
"""

import json
import logging
from dataclasses import dataclass, replace
from http.client import responses as http_status_text
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests
import urllib3
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from . import __version__
from .device import DecodeError, Device, parse_device_response

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://unifi"
DEFAULT_USERNAME = "ubnt"
DEFAULT_PASSWORD = "ubnt"
DEFAULT_TIMEOUT = 60.0
DEFAULT_SITE = "default"
USER_AGENT = f"unifi-block/{__version__}"

CSRF_HEADER = "x-csrf-token"

LOGIN_PATH = "/api/auth/login"
CLIENTS_PATH = "/proxy/network/api/s/{site}/rest/user"
STAMGR_PATH = "/proxy/network/api/s/{site}/cmd/stamgr"


class UniFiError(Exception):
    """Base error for controller communication; str() is the accumulated message."""


class UninitializedSessionError(UniFiError):
    """Login was attempted on a session with no login strategy."""

    def __init__(self, message: str = "uninitialized session"):
        super().__init__(message)


class HTTPStatusError(UniFiError):
    """The controller answered with a status outside [200, 400)."""

    def __init__(self, message: str, status_code: int, body: str):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class SessionConfigError(UniFiError):
    """The session configuration is unusable."""


@dataclass(frozen=True)
class SessionConfig:
    """
    Settings for a Session.

    Defaults match a factory-reset controller: endpoint ``http://unifi``,
    credentials ``ubnt``/``ubnt``, 60 second request timeout, site
    ``default``. A ``username`` of None leaves the session without a login
    strategy.
    """

    endpoint: str = DEFAULT_ENDPOINT
    username: Optional[str] = DEFAULT_USERNAME
    password: str = DEFAULT_PASSWORD
    timeout: float = DEFAULT_TIMEOUT
    site: str = DEFAULT_SITE
    verify_ssl: bool = False
    user_agent: str = USER_AGENT

    def with_endpoint(self, endpoint: str) -> "SessionConfig":
        return replace(self, endpoint=endpoint)

    def with_credentials(self, username: str, password: str) -> "SessionConfig":
        return replace(self, username=username, password=password)

    def validate(self) -> None:
        parsed = urlparse(self.endpoint)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise SessionConfigError(f"invalid endpoint URL: {self.endpoint!r}")
        if self.timeout <= 0:
            raise SessionConfigError(f"timeout must be positive, got {self.timeout}")
        if not self.site:
            raise SessionConfigError("site must not be empty")


class IdentifyingAdapter(HTTPAdapter):
    """HTTPAdapter that stamps a fixed User-Agent on every outgoing request."""

    def __init__(self, user_agent: str, **kwargs):
        self.user_agent = user_agent
        super().__init__(**kwargs)

    def send(self, request, **kwargs):
        if self.user_agent:
            request.headers["User-Agent"] = self.user_agent
        return super().send(request, **kwargs)


class UnconfiguredLogin:
    """Login strategy for a session built without credentials."""

    def __call__(self, session: "Session") -> str:
        raise UninitializedSessionError()


class WebLogin:
    """Cookie based login against the UniFi OS auth endpoint."""

    def __init__(self, username: str, password: str):
        self.username = username
        self.password = password

    def __call__(self, session: "Session") -> str:
        payload = {
            "username": self.username,
            "password": self.password,
            "strict": "true",
            "remember": "true",
        }
        logger.debug(f"Logging in to {session.endpoint} as {self.username}")
        return session._post(session._url(LOGIN_PATH), payload)


def build_login(config: SessionConfig):
    if config.username is None:
        return UnconfiguredLogin()
    return WebLogin(config.username, config.password)


def build_http_session(config: SessionConfig) -> requests.Session:
    """requests.Session with the identifying adapter mounted and no retries."""
    http = requests.Session()
    adapter = IdentifyingAdapter(config.user_agent, max_retries=Retry(total=0))
    http.mount("http://", adapter)
    http.mount("https://", adapter)

    # Controllers ship self-signed certificates
    if not config.verify_ssl:
        http.verify = False
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
    return http


class Session:
    """Authenticated connection to a UniFi controller."""

    def __init__(self, config: Optional[SessionConfig] = None, http: Optional[requests.Session] = None):
        """
        Prepare a session. No network I/O happens until login() or an action.

        Args:
            config: Session settings (defaults to SessionConfig()).
            http: Pre-built requests.Session to use as the transport.

        Raises:
            SessionConfigError: if the configuration does not validate.
        """
        self.config = config or SessionConfig()
        self.config.validate()

        self.endpoint = self.config.endpoint.rstrip("/")
        self.http = http if http is not None else build_http_session(self.config)
        self.csrf: Optional[str] = None
        self.error: Optional[UniFiError] = None
        self._login = build_login(self.config)
        self._login_result: Optional[str] = None

    def __enter__(self) -> "Session":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        self.http.close()

    @property
    def logged_in(self) -> bool:
        return self._login_result is not None

    def login(self) -> str:
        """
        Authenticate with the controller, once.

        Returns the login response body. Later calls return the cached body
        without a network round trip.
        """
        self._check()
        if self._login_result is not None:
            return self._login_result

        result = self._login(self)
        self._login_result = result
        return result

    def list_devices(self) -> List[Device]:
        """All known clients, sorted ascending by last-seen timestamp."""
        self._check()
        body = self._get(self._url(CLIENTS_PATH.format(site=self.config.site)))
        try:
            devices = parse_device_response(body)
        except DecodeError as e:
            raise self._fail(e) from e
        return sorted(devices, key=lambda d: d.last_seen)

    def block(self, mac: str) -> str:
        """Prevent the client with this MAC from connecting."""
        return self._mac_action("block-sta", mac)

    def unblock(self, mac: str) -> str:
        """Re-enable a blocked client."""
        return self._mac_action("unblock-sta", mac)

    def kick(self, mac: str) -> str:
        """Disconnect a connected client; it may reconnect."""
        return self._mac_action("kick-sta", mac)

    def _mac_action(self, action: str, mac: str) -> str:
        self._check()
        self.login()
        payload = {"cmd": action, "mac": mac}
        return self._post(self._url(STAMGR_PATH.format(site=self.config.site)), payload)

    def _url(self, path: str) -> str:
        return f"{self.endpoint}{path}"

    def _get(self, url: str) -> str:
        return self._verb("GET", url)

    def _post(self, url: str, payload: Dict[str, Any]) -> str:
        return self._verb("POST", url, json.dumps(payload))

    def _verb(self, method: str, url: str, body: Optional[str] = None) -> str:
        self._check()

        headers = {
            "Content-Type": "application/json; charset=utf-8",
            "Accept": "application/json",
            "Origin": self.endpoint,
        }
        if self.csrf:
            headers[CSRF_HEADER] = self.csrf

        try:
            response = self.http.request(
                method,
                url,
                data=body.encode("utf-8") if body is not None else None,
                headers=headers,
                timeout=self.config.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise self._fail(e) from e

        logger.debug(f"{method} {url} -> HTTP {response.status_code}")

        token = response.headers.get(CSRF_HEADER)
        if token:
            self.csrf = token

        text = response.text
        if not 200 <= response.status_code < 400:
            status = http_status_text.get(response.status_code) or response.reason or f"HTTP {response.status_code}"
            raise self._fail_status(status, response.status_code, text)

        return text

    def _check(self) -> None:
        if self.error is not None:
            raise self.error

    def _accumulate(self, message: str) -> str:
        if self.error is None:
            return message
        return f"{message}\n{self.error}"

    def _fail(self, cause: Exception) -> UniFiError:
        """Fold cause into the sticky error and return the error to raise."""
        error = UniFiError(self._accumulate(str(cause)))
        logger.debug(f"Session error: {cause}")
        self.error = error
        return error

    def _fail_status(self, status: str, status_code: int, body: str) -> HTTPStatusError:
        error = HTTPStatusError(self._accumulate(status), status_code, body)
        error.__cause__ = self.error
        logger.debug(f"Session error: {status}")
        self.error = error
        return error
