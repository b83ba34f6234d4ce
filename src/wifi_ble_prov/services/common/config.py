"""
wifi-ble-prov - Command Line Configuration

    wifi-ble-prov [-k HEX] [-n NAME] [-l LEVEL] [-p PATH]

The local key may also come from the WIFI_BLE_PROV_LOCAL_KEY environment
variable (so it stays out of the process list). Without either, a random key
is generated for this run.
"""

import argparse
import logging
import os
import re
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from wifi_ble_prov import __version__
from wifi_ble_prov.constants import (
    DEFAULT_LOCAL_NAME,
    DEFAULT_LOG_LEVEL,
    DEFAULT_ROOT_PATH,
    LOCAL_KEY_ENV_VAR,
)
from wifi_ble_prov.services.common import crypto

LOG_LEVELS = {
    'silent': logging.CRITICAL + 10,
    'fatal': logging.CRITICAL,
    'error': logging.ERROR,
    'warn': logging.WARNING,
    'info': logging.INFO,
    'debug': logging.DEBUG,
    'trace': logging.DEBUG,
}

_OBJECT_PATH_RE = re.compile(r'^(/[A-Za-z0-9_]+)+$')


@dataclass
class ProvisioningConfig:
    local_key: bytes
    local_name: str = DEFAULT_LOCAL_NAME
    log_level: str = DEFAULT_LOG_LEVEL
    root_path: str = DEFAULT_ROOT_PATH
    # True when local_key was generated for this run
    key_generated: bool = False

    @property
    def logging_level(self) -> int:
        return LOG_LEVELS[self.log_level]


def parse_local_key(value: str) -> bytes:
    """64 hex characters -> 32-byte AES-256 key."""
    value = value.strip()
    if len(value) != crypto.KEY_SIZE * 2:
        raise argparse.ArgumentTypeError(f"local key must be {crypto.KEY_SIZE * 2} hex characters")
    try:
        return bytes.fromhex(value)
    except ValueError:
        raise argparse.ArgumentTypeError("local key must be hexadecimal")


def parse_object_path(value: str) -> str:
    if not _OBJECT_PATH_RE.match(value):
        raise argparse.ArgumentTypeError(f"invalid D-Bus object path: {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='wifi-ble-prov',
        description='Provision WiFi credentials over Bluetooth LE.'
    )
    parser.add_argument('-k', '--local-key', type=parse_local_key, default=None,
                        help=f"AES-256 key as 64 hex characters (default: ${LOCAL_KEY_ENV_VAR}, else random)")
    parser.add_argument('-n', '--local-name', default=DEFAULT_LOCAL_NAME,
                        help=f"advertised device name (default: {DEFAULT_LOCAL_NAME})")
    parser.add_argument('-l', '--level', choices=list(LOG_LEVELS), default=DEFAULT_LOG_LEVEL,
                        help=f"log level (default: {DEFAULT_LOG_LEVEL})")
    parser.add_argument('-p', '--root-path', type=parse_object_path, default=DEFAULT_ROOT_PATH,
                        help=f"root D-Bus object path (default: {DEFAULT_ROOT_PATH})")
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")
    return parser


def parse_args(argv: Optional[Sequence[str]] = None,
               environ: Optional[Mapping[str, str]] = None) -> ProvisioningConfig:
    """
    Parse the command line into a ProvisioningConfig.

    Invalid arguments (or an invalid key in the environment) exit with
    status 2 through argparse.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    environ = os.environ if environ is None else environ

    key = args.local_key
    key_generated = False
    if key is None and environ.get(LOCAL_KEY_ENV_VAR):
        try:
            key = parse_local_key(environ[LOCAL_KEY_ENV_VAR])
        except argparse.ArgumentTypeError as e:
            parser.error(f"{LOCAL_KEY_ENV_VAR}: {e}")
    if key is None:
        key = crypto.generate_key()
        key_generated = True

    return ProvisioningConfig(
        local_key=key,
        local_name=args.local_name,
        log_level=args.level,
        root_path=args.root_path,
        key_generated=key_generated,
    )
