"""
Terminal output helpers for the unifi-block CLI.

Device listings and action results go to stdout undecorated so they can be
piped; status and error lines go to stderr with a colored prefix when stderr
is a terminal.
"""

import logging
import sys
from typing import Optional, TextIO


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


# Color codes for terminal output
class Colors:
    RED = '\033[91m'
    YELLOW = '\033[93m'
    WHITE = '\033[97m'
    RESET = '\033[0m'


def _use_color(stream: TextIO) -> bool:
    isatty = getattr(stream, 'isatty', None)
    return bool(isatty and isatty())


def print_colored(message: str, color: str = Colors.WHITE, stream: Optional[TextIO] = None):
    """Print message to stream (stderr by default), colored when it is a terminal."""
    stream = stream if stream is not None else sys.stderr
    if _use_color(stream):
        print(f"{color}{message}{Colors.RESET}", file=stream)
    else:
        print(message, file=stream)


def print_error(message: str, stream: Optional[TextIO] = None):
    """Print error message."""
    print_colored(f"ERROR: {message}", Colors.RED, stream)


def print_warning(message: str, stream: Optional[TextIO] = None):
    """Print warning message."""
    print_colored(f"WARNING: {message}", Colors.YELLOW, stream)


def setup_logging(verbose: bool = False) -> None:
    """Configure root logging on stderr; DEBUG when verbose, WARNING otherwise."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stderr)
        ],
    )
    # urllib3 connection chatter is noise even in verbose mode
    logging.getLogger('urllib3').setLevel(logging.WARNING)
