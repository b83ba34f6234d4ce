"""
wifi-ble-prov - Command Protocol

Decodes, validates and executes commands written to the command
characteristic.

Wire format (UTF-8 JSON):

    {"type": "connect", "iv": "<b64>", "ssid": "<b64 ciphertext>",
     "security": {"type": "wpa-psk", "psk": "<b64 ciphertext>"}}   # security optional

    {"type": "disconnect", "iv": "<b64>", "challenge": "<b64 ciphertext of 'disconnect'>"}

All fields are decrypted with the local key and the command's IV before
anything is handed to NetworkManager, so a rejected command never leaves a
half-applied connection change behind.

Besides the field checks, the protocol:
- runs one command at a time; a command arriving while another one is being
  executed is rejected, not queued
- remembers the IVs of accepted commands and rejects a command that reuses one,
  which stops a captured command from being replayed
"""

import json
import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Dict, Optional

from wifi_ble_prov.constants import DISCONNECT_CHALLENGE
from wifi_ble_prov.exceptions.command_rejected_exception import CommandRejectedException
from wifi_ble_prov.services.common import crypto
from wifi_ble_prov.services.common.network import SECURITY_WPA_PSK, WifiSecurity

logger = logging.getLogger(__name__)

COMMAND_CONNECT = 'connect'
COMMAND_DISCONNECT = 'disconnect'

# How many accepted IVs to remember for replay detection
IV_HISTORY_SIZE = 1024


@dataclass(frozen=True)
class ConnectCommand:
    iv: bytes
    ssid: str
    security: Optional[WifiSecurity] = None


@dataclass(frozen=True)
class DisconnectCommand:
    iv: bytes


class IvHistory:
    """Bounded record of IVs already used by accepted commands."""

    def __init__(self, size: int = IV_HISTORY_SIZE):
        self._order = deque()
        self._seen = set()
        self._size = size
        self._lock = threading.Lock()

    def __contains__(self, iv: bytes) -> bool:
        with self._lock:
            return iv in self._seen

    def remember(self, iv: bytes) -> None:
        with self._lock:
            if iv in self._seen:
                return
            self._order.append(iv)
            self._seen.add(iv)
            while len(self._order) > self._size:
                self._seen.discard(self._order.popleft())


def _require_str(payload: Dict[str, Any], name: str) -> str:
    value = payload.get(name)
    if not isinstance(value, str) or not value:
        raise CommandRejectedException(f"Missing or invalid '{name}' field")
    return value


class CommandProtocol:
    """
    Args:
        network: NetworkManagerClient (or anything with connect/disconnect)
        local_key: 32-byte AES-256 key shared with the provisioning app
    """

    def __init__(self, network, local_key: bytes, iv_history: IvHistory = None):
        self.network = network
        self.local_key = local_key
        self.iv_history = iv_history if iv_history is not None else IvHistory()
        self._busy = threading.Lock()

    def decode(self, data: bytes):
        """
        Parse and decrypt a command without executing it.

        Returns:
            ConnectCommand or DisconnectCommand

        Raises:
            CommandRejectedException: malformed, unknown or invalid command
            CryptoException: a field could not be decrypted
        """
        try:
            payload = json.loads(bytes(data).decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CommandRejectedException(f"Invalid command payload: {e}") from e

        if not isinstance(payload, dict):
            raise CommandRejectedException("Command payload must be a JSON object")

        command_type = payload.get('type')
        if command_type == COMMAND_CONNECT:
            return self._decode_connect(payload)
        if command_type == COMMAND_DISCONNECT:
            return self._decode_disconnect(payload)
        raise CommandRejectedException(f"Unknown command type={command_type}")

    def _decode_iv(self, payload: Dict[str, Any]) -> bytes:
        iv = crypto.b64decode(_require_str(payload, 'iv'))
        if len(iv) != crypto.IV_SIZE:
            raise CommandRejectedException(f"IV must be {crypto.IV_SIZE} bytes, got {len(iv)}")
        if iv in self.iv_history:
            raise CommandRejectedException("IV already used by an earlier command")
        return iv

    def _decode_connect(self, payload: Dict[str, Any]) -> ConnectCommand:
        iv = self._decode_iv(payload)
        ssid = crypto.decrypt(_require_str(payload, 'ssid'), self.local_key, iv)

        security = None
        descriptor = payload.get('security')
        if descriptor is not None:
            if not isinstance(descriptor, dict):
                raise CommandRejectedException("'security' must be a JSON object")
            security_type = descriptor.get('type')
            if security_type != SECURITY_WPA_PSK:
                raise CommandRejectedException(f"Unknown security type={security_type}")
            psk = crypto.decrypt(_require_str(descriptor, 'psk'), self.local_key, iv)
            security = WifiSecurity(type=SECURITY_WPA_PSK, psk=psk)

        return ConnectCommand(iv=iv, ssid=ssid, security=security)

    def _decode_disconnect(self, payload: Dict[str, Any]) -> DisconnectCommand:
        iv = self._decode_iv(payload)
        challenge = crypto.decrypt(_require_str(payload, 'challenge'), self.local_key, iv)
        if challenge != DISCONNECT_CHALLENGE:
            raise CommandRejectedException("Invalid challenge")
        return DisconnectCommand(iv=iv)

    def handle(self, data: bytes) -> None:
        """Decode and execute one command write."""
        if not self._busy.acquire(blocking=False):
            raise CommandRejectedException("Another command is in progress")

        try:
            command = self.decode(data)
            self.iv_history.remember(command.iv)

            if isinstance(command, ConnectCommand):
                logger.info(f"Received connect command for SSID {command.ssid}")
                self.network.connect(command.ssid, command.security)
            else:
                logger.info("Received disconnect command")
                self.network.disconnect()
        finally:
            self._busy.release()
