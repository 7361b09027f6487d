"""
UniFi network client records.

Devices are only ever built by decoding a controller response; they are
immutable for the lifetime of a CLI invocation.
"""

import json
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Dict, List


class DecodeError(ValueError):
    """Controller response body could not be decoded into devices."""


def first_non_empty(*options: str) -> str:
    for option in options:
        if option:
            return option
    return ""


@dataclass(frozen=True)
class Device:
    """A UniFi network client (station) as reported by the controller."""

    id: str = ""
    mac: str = ""
    site_id: str = ""
    oui: str = ""
    network_id: str = ""
    ip: str = ""
    fixed_ip: str = ""
    hostname: str = ""
    usergroup_id: str = ""
    name: str = ""
    first_seen: int = 0
    last_seen: int = 0
    dev_id_override: int = 0
    fingerprint_override: bool = False
    blocked: bool = False
    is_guest: bool = False
    is_wired: bool = False
    noted: bool = False
    use_fixedip: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Device":
        """
        Build a Device from one entry of the controller's ``data`` array.

        Unknown keys are ignored and missing or null keys keep their defaults.
        The controller's ``_id`` key maps to ``id``.
        """
        if not isinstance(data, dict):
            raise DecodeError(f"expected device object, got {type(data).__name__}")

        values: Dict[str, Any] = {}
        for f in fields(cls):
            key = "_id" if f.name == "id" else f.name
            raw = data.get(key)
            if raw is None:
                continue
            try:
                if f.type is bool:
                    values[f.name] = bool(raw)
                elif f.type is int:
                    values[f.name] = int(raw)
                else:
                    values[f.name] = str(raw)
            except (TypeError, ValueError) as e:
                raise DecodeError(f"invalid value for {key!r}: {raw!r}") from e
        return cls(**values)

    @property
    def display_name(self) -> str:
        """The friendly name: name, hostname, fixed IP, IP, OUI, then MAC."""
        return first_non_empty(self.name, self.hostname, self.fixed_ip, self.ip, self.oui, self.mac)

    @property
    def address(self) -> str:
        return first_non_empty(self.fixed_ip, self.ip)

    def last_seen_rfc3339(self) -> str:
        return datetime.fromtimestamp(self.last_seen).astimezone().isoformat(timespec="seconds")

    def __str__(self) -> str:
        blocked = " blocked" if self.blocked else ""
        return (
            f"{self.mac:>20} {self.address:<16} {self.display_name:<20} "
            f"({self.last_seen_rfc3339()}){blocked}"
        )


def parse_device_response(body: str) -> List[Device]:
    """
    Decode a controller ``{"meta": {...}, "data": [...]}`` body into devices.

    Raises DecodeError on malformed JSON, an unexpected shape, or a
    ``meta.rc`` of ``"error"``.
    """
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as e:
        raise DecodeError(f"invalid JSON response: {e}") from e

    if not isinstance(payload, dict):
        raise DecodeError("expected a JSON object response")

    meta = payload.get("meta") or {}
    if isinstance(meta, dict) and meta.get("rc") == "error":
        raise DecodeError(meta.get("msg") or "controller returned rc=error")

    data = payload.get("data") or []
    if not isinstance(data, list):
        raise DecodeError("expected 'data' to be a list")

    return [Device.from_dict(entry) for entry in data]
