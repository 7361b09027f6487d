#!/usr/bin/env python3
"""
UniFi Client Blocking CLI

Lists the clients known to a UniFi controller and blocks, unblocks or kicks
the ones whose name or hostname contains any of the given match terms. Block
and unblock match lists can also be kept in Consul and applied with
``kv sync``.
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from . import __version__
from .config import ConfigError, load_config
from .device import Device
from .kv import KV, KVStoreError
from .output import print_error, print_warning, setup_logging
from .session import Session, UniFiError

logger = logging.getLogger(__name__)

BLOCKED_KEY = "blocked"
UNBLOCKED_KEY = "unblocked"

COMMANDS = ("list", "block", "unblock", "kick", "kv")
KV_COMMANDS = ("list", "block", "unblock", "sync", "clear")

DeviceFilter = Callable[[Device], bool]
DeviceAction = Callable[[Device], None]


@dataclass
class Operation:
    """An action applied to every device the filter accepts."""

    action: DeviceAction
    filter: DeviceFilter


def match_helper(greedy: bool, device: Device, matches: Sequence[str]) -> bool:
    if not matches:
        return greedy

    for match in matches:
        if match in device.name or match in device.hostname:
            return True
    return False


def greedy(matches: Sequence[str]) -> DeviceFilter:
    """Filter that accepts every device when no match terms are given."""
    matches = list(matches)
    return lambda device: match_helper(True, device, matches)


def non_greedy(matches: Sequence[str]) -> DeviceFilter:
    """Filter that accepts no device when no match terms are given."""
    matches = list(matches)
    return lambda device: match_helper(False, device, matches)


def display_device(device: Device) -> None:
    print(device)


def device_action(fn: Callable[[str], str]) -> DeviceAction:
    """
    Wrap a session MAC action so it prints the device and the controller's reply.

    The controller's response body is printed line by line, indented under
    the device's display name.
    """
    def action(device: Device) -> None:
        result = fn(device.mac)
        print(f"{device.display_name}:")
        for line in result.splitlines():
            print(f"  {line}")
    return action


def block_device(session: Session) -> DeviceAction:
    return device_action(session.block)


def unblock_device(session: Session) -> DeviceAction:
    return device_action(session.unblock)


def kick_device(session: Session) -> DeviceAction:
    return device_action(session.kick)


def apply(session: Session, operations: Sequence[Operation]) -> int:
    """
    Run operations against the controller's device list.

    The device list is fetched once. Operations run in order, each against
    every device. A failing device action is reported on stderr and the batch
    continues.

    Returns:
        Number of failed device actions

    Raises:
        UniFiError: if the device list cannot be fetched
    """
    devices = session.list_devices()

    failures = 0
    for op in operations:
        for device in devices:
            if not op.filter(device):
                continue
            try:
                op.action(device)
            except UniFiError as e:
                print_error(f"{device.display_name}: {e}")
                failures += 1
    return failures


def format_kv_list(items: Optional[List[str]]) -> str:
    return "[" + " ".join(items or []) + "]"


def run_kv(session: Session, kv: KV, args: List[str]) -> int:
    """
    Handle ``kv [list|block|unblock|sync|clear] [terms...]``.

    Returns the process exit code.
    """
    kv_command = args[0] if args else "list"
    terms = args[1:]

    if kv_command not in KV_COMMANDS:
        print_error(f"unknown kv command {kv_command!r} (choose from {', '.join(KV_COMMANDS)})")
        return 2

    try:
        if kv_command == "block":
            kv.put(BLOCKED_KEY, terms)
            return 0
        if kv_command == "unblock":
            kv.put(UNBLOCKED_KEY, terms)
            return 0
        if kv_command == "clear":
            kv.delete(BLOCKED_KEY)
            kv.delete(UNBLOCKED_KEY)
            return 0

        to_block = kv.get(BLOCKED_KEY)
        to_unblock = kv.get(UNBLOCKED_KEY)
    except KVStoreError as e:
        print_error(f"key-value store {kv_command}: {e}")
        return 1

    if kv_command == "list":
        print("KV Config:")
        print(f"  block {format_kv_list(to_block)}")
        print(f"  unblock {format_kv_list(to_unblock)}")
        return 0

    operations = [
        Operation(action=block_device(session), filter=non_greedy(to_block or [])),
        Operation(action=unblock_device(session), filter=non_greedy(to_unblock or [])),
    ]
    return execute("kv sync", session, operations)


def execute(command: str, session: Session, operations: Sequence[Operation]) -> int:
    try:
        failures = apply(session, operations)
    except UniFiError as e:
        print_error(f"executing {command}: {e}")
        return 1

    if failures:
        print_warning(f"{command}: {failures} device action(s) failed")
        return 1
    return 0


def build_operations(command: str, session: Session, terms: List[str]) -> List[Operation]:
    if command == "block":
        return [Operation(action=block_device(session), filter=greedy(terms))]
    if command == "unblock":
        return [Operation(action=unblock_device(session), filter=greedy(terms))]
    if command == "kick":
        return [Operation(action=kick_device(session), filter=non_greedy(terms))]
    return [Operation(action=display_device, filter=greedy(terms))]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="unifi-block",
        description="UniFi Client Blocking Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # List all clients, oldest last-seen first
  %(prog)s

  # Block every client whose name or hostname contains "tablet" or "console"
  %(prog)s block tablet console

  # Unblock them again
  %(prog)s unblock tablet console

  # Disconnect a client so it re-associates
  %(prog)s kick laptop

  # Keep match lists in Consul and apply them
  %(prog)s kv block tablet console
  %(prog)s kv unblock laptop
  %(prog)s kv sync

Environment:
  UNIFI_ENDPOINT, UNIFI_USERNAME, UNIFI_PASSWORD, UNIFI_SITE, UNIFI_TIMEOUT,
  UNIFI_VERIFY_SSL, UNIFI_BLOCK_CONFIG, CONSUL_HTTP_ADDR, CONSUL_HTTP_TOKEN
        """
    )

    parser.add_argument(
        'command',
        nargs='?',
        default='list',
        choices=COMMANDS,
        help='Operation to run (default: list)'
    )
    parser.add_argument(
        'terms',
        nargs='*',
        help='Match terms (substring of device name or hostname), or kv subcommand and terms'
    )
    parser.add_argument(
        '--config',
        type=str,
        metavar='FILE',
        help='Path to config.yaml (default: $UNIFI_BLOCK_CONFIG)'
    )
    parser.add_argument(
        '--endpoint',
        type=str,
        help='Controller base URL (default: $UNIFI_ENDPOINT or http://unifi)'
    )
    parser.add_argument(
        '--username',
        type=str,
        help='Controller username (default: $UNIFI_USERNAME or ubnt)'
    )
    parser.add_argument(
        '--password',
        type=str,
        help='Controller password (default: $UNIFI_PASSWORD or ubnt)'
    )
    parser.add_argument(
        '--site',
        type=str,
        help='Controller site name (default: $UNIFI_SITE or default)'
    )
    parser.add_argument(
        '--timeout',
        type=float,
        help='Per-request timeout in seconds (default: 60)'
    )
    parser.add_argument(
        '--verify-ssl',
        action='store_true',
        default=None,
        help='Verify SSL certificates (default: False, accepts self-signed)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Enable debug logging on stderr'
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    try:
        config = load_config(
            args.config,
            overrides={
                'endpoint': args.endpoint,
                'username': args.username,
                'password': args.password,
                'site': args.site,
                'timeout': args.timeout,
                'verify_ssl': args.verify_ssl,
            },
        )
    except ConfigError as e:
        print_error(f"cannot load configuration: {e}")
        return 1

    try:
        session = Session(config.session)
    except UniFiError as e:
        print_error(f"cannot create session: {e}")
        return 1

    with session:
        try:
            session.login()
        except UniFiError as e:
            print_error(f"cannot authenticate session: {e}")
            return 1
        logger.debug(f"Authenticated with {session.endpoint}")

        if args.command == "kv":
            kv = KV(
                address=config.consul.address,
                token=config.consul.token,
                scheme=config.consul.scheme,
            )
            try:
                return run_kv(session, kv, args.terms)
            finally:
                kv.close()

        operations = build_operations(args.command, session, args.terms)
        return execute(args.command, session, operations)


if __name__ == "__main__":
    sys.exit(main())
