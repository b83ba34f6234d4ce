"""
wifi-ble-prov - Characteristic Behaviors

One class per characteristic, implementing only the operations its flags
declare:

- ConnectedBehavior    read + start_notify/stop_notify
- MacBehavior          read
- AccessPointBehavior  read
- CommandBehavior      write

Behaviors run on worker threads (see SystemBusTransport.spawn), so shared
state is guarded where more than one call can touch it.
"""

import json
import logging
import threading
from typing import Callable, Optional

from wifi_ble_prov.services.common.network import ConnectionStatus, ConnectionWatch

logger = logging.getLogger(__name__)

CONNECTED = b'\x01'
DISCONNECTED = b'\x00'


def _status_byte(connected: bool) -> bytes:
    return CONNECTED if connected else DISCONNECTED


class ConnectedBehavior:
    """
    WiFi link state as a single byte, readable and notifiable.

    While notifications are enabled a ConnectionWatch is kept open and reads
    are answered from it; otherwise each read asks NetworkManager.
    """

    def __init__(self, network):
        self.network = network
        self._watch: Optional[ConnectionWatch] = None
        self._lock = threading.Lock()

    @property
    def watching(self) -> bool:
        return self._watch is not None

    def read(self) -> bytes:
        watch = self._watch
        if watch is not None:
            connected = watch.connected
        else:
            connected = self.network.get_connection_status().connected
        return _status_byte(connected)

    def start_notify(self, notify: Callable[[bytes], None]) -> None:
        with self._lock:
            if self._watch is not None:
                logger.debug("Connection status notifications already enabled")
                return

            def on_status(status: ConnectionStatus):
                notify(_status_byte(status.connected))

            self._watch = self.network.watch_connection_status(on_status)
        logger.info("Client subscribed to connection status notifications")

    def stop_notify(self) -> None:
        with self._lock:
            if self._watch is None:
                return
            self._watch.close()
            self._watch = None
        logger.info("Client unsubscribed from connection status notifications")


class MacBehavior:
    """WiFi hardware address, as the bytes of its string form."""

    def __init__(self, network):
        self.network = network

    def read(self) -> bytes:
        return self.network.get_mac().encode('utf-8')


class AccessPointBehavior:
    """
    Currently associated access point.

    Response format (UTF-8 JSON, empty when disconnected or no access
    point is associated yet):
    {"ssid":"home-net","frequency":2437,"strength":70}
    """

    def __init__(self, network):
        self.network = network

    def read(self) -> bytes:
        status = self.network.get_connection_status()
        # Activated without an access point (e.g. mid-roam) has nothing to report yet
        if not status.connected or status.ssid is None:
            return b''

        info = {
            'ssid': status.ssid,
            'frequency': status.frequency,
            'strength': status.strength,
        }
        return json.dumps(info, separators=(',', ':')).encode('utf-8')


class CommandBehavior:
    """Write-only sink for encrypted commands; see command_protocol."""

    def __init__(self, protocol):
        self.protocol = protocol

    def write(self, value: bytes) -> None:
        self.protocol.handle(value)
