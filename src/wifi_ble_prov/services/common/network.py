"""
wifi-ble-prov - NetworkManager Client

Talks to NetworkManager over the system D-Bus to:
- enable networking and the WiFi radio
- find the WiFi device and its hardware address
- report and watch the WiFi link state
- create/activate and deactivate/delete the provisioning connection profile

Credentials received over BLE are stored in a dedicated settings profile
(fixed UUID, id 'pi-prov') so that disconnect can tell it apart from
connections configured by other means and only delete its own.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from wifi_ble_prov.constants import (
    NM_ACCESS_POINT_IFACE,
    NM_CONNECTION_ACTIVE_IFACE,
    NM_DEVICE_IFACE,
    NM_DEVICE_STATE_ACTIVATED,
    NM_DEVICE_TYPE_WIFI,
    NM_DEVICE_WIRELESS_IFACE,
    NM_ERROR_INVALID_CONNECTION,
    NM_INTERFACE,
    NM_PATH,
    NM_SERVICE,
    NM_SETTINGS_CONNECTION_IFACE,
    NM_SETTINGS_IFACE,
    NM_SETTINGS_PATH,
    PROV_CONNECTION_ID,
    PROV_CONNECTION_UUID,
)
from wifi_ble_prov.exceptions.bus_exception import BusException
from wifi_ble_prov.exceptions.wifi_device_not_found_exception import WifiDeviceNotFoundException
from wifi_ble_prov.services.common.bus_types import TypedValue

logger = logging.getLogger(__name__)

# "No object" in NetworkManager object path properties
NO_OBJECT_PATH = '/'

SECURITY_WPA_PSK = 'wpa-psk'


@dataclass(frozen=True)
class WifiSecurity:
    type: str
    psk: str


@dataclass
class WifiDevice:
    path: str
    ip_interface: str
    activated: bool
    active_connection: str


@dataclass(frozen=True)
class ConnectionStatus:
    connected: bool
    ssid: Optional[str] = None
    frequency: Optional[int] = None
    strength: Optional[int] = None


class ConnectionWatch:
    """
    Live view of the WiFi device's activation state.

    Created by NetworkManagerClient.watch_connection_status(). Every transition
    between activated and not activated is reported once, in bus order, to the
    on_status callback. close() stops the subscription.
    """

    def __init__(self, transport, device: WifiDevice, on_status: Callable[[ConnectionStatus], None]):
        self._device = device
        self._on_status = on_status
        self._connected = device.activated
        self._subscription = transport.subscribe_properties_changed(
            NM_SERVICE, device.path, self._on_properties_changed
        )
        # Re-read after subscribing; the device snapshot may already be stale
        state = transport.get_property(NM_SERVICE, device.path, NM_DEVICE_IFACE, 'State')
        self._connected = state == NM_DEVICE_STATE_ACTIVATED

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def closed(self) -> bool:
        return not self._subscription.active

    def _on_properties_changed(self, interface: str, changed: Dict[str, Any]) -> None:
        if 'State' not in changed:
            return

        activated = changed['State'] == NM_DEVICE_STATE_ACTIVATED
        if activated == self._connected:
            return

        self._connected = activated
        logger.info(f"WiFi device {self._device.path} {'connected' if activated else 'disconnected'}")
        self._on_status(ConnectionStatus(connected=activated))

    def close(self) -> None:
        self._subscription.cancel()


class NetworkManagerClient:
    """
    NetworkManager operations needed by the provisioning service.

    Args:
        transport: bus transport (see common.bus.SystemBusTransport)
    """

    def __init__(self, transport):
        self.transport = transport

    def _get(self, path: str, interface: str, name: str) -> Any:
        return self.transport.get_property(NM_SERVICE, path, interface, name)

    def _nm_call(self, path: str, interface: str, member: str, *args, signature: str = None) -> Any:
        return self.transport.call(NM_SERVICE, path, interface, member, *args, signature=signature)

    # ------------------------------------------------------------------------
    # Radio state
    # ------------------------------------------------------------------------

    def is_networking_enabled(self) -> bool:
        return bool(self._get(NM_PATH, NM_INTERFACE, 'NetworkingEnabled'))

    def set_networking_state(self, enabled: bool) -> None:
        # NetworkingEnabled is read-only; Enable() is the supported switch
        logger.info(f"Setting NetworkManager networking {'on' if enabled else 'off'}")
        self._nm_call(NM_PATH, NM_INTERFACE, 'Enable', TypedValue('b', enabled), signature='b')

    def is_wireless_enabled(self) -> bool:
        return bool(self._get(NM_PATH, NM_INTERFACE, 'WirelessEnabled'))

    def set_wireless_state(self, enabled: bool) -> None:
        logger.info(f"Setting WiFi radio {'on' if enabled else 'off'}")
        self.transport.set_property(NM_SERVICE, NM_PATH, NM_INTERFACE, 'WirelessEnabled',
                                    TypedValue('b', enabled))

    def ensure_radio_enabled(self) -> None:
        """Turn on networking and the WiFi radio if either is off."""
        if not self.is_networking_enabled():
            self.set_networking_state(True)
        if not self.is_wireless_enabled():
            self.set_wireless_state(True)

    # ------------------------------------------------------------------------
    # Device and link state
    # ------------------------------------------------------------------------

    def get_wifi_device(self) -> WifiDevice:
        """
        Find the first WiFi device known to NetworkManager.

        Raises:
            WifiDeviceNotFoundException: no device of type WiFi
        """
        for path in self._nm_call(NM_PATH, NM_INTERFACE, 'GetDevices', signature=''):
            if self._get(path, NM_DEVICE_IFACE, 'DeviceType') != NM_DEVICE_TYPE_WIFI:
                continue
            return WifiDevice(
                path=path,
                ip_interface=self._get(path, NM_DEVICE_IFACE, 'IpInterface'),
                activated=self._get(path, NM_DEVICE_IFACE, 'State') == NM_DEVICE_STATE_ACTIVATED,
                active_connection=self._get(path, NM_DEVICE_IFACE, 'ActiveConnection'),
            )

        raise WifiDeviceNotFoundException()

    def get_mac(self) -> str:
        device = self.get_wifi_device()
        return self._get(device.path, NM_DEVICE_WIRELESS_IFACE, 'HwAddress')

    def get_connection_status(self) -> ConnectionStatus:
        device = self.get_wifi_device()
        if not device.activated:
            return ConnectionStatus(connected=False)

        ap_path = self._get(device.path, NM_DEVICE_WIRELESS_IFACE, 'ActiveAccessPoint')
        if ap_path == NO_OBJECT_PATH:
            # Activated without an access point yet (e.g. mid-roam)
            return ConnectionStatus(connected=True)

        ssid = self._get(ap_path, NM_ACCESS_POINT_IFACE, 'Ssid')
        return ConnectionStatus(
            connected=True,
            ssid=bytes(ssid).decode('utf-8', errors='replace'),
            frequency=self._get(ap_path, NM_ACCESS_POINT_IFACE, 'Frequency'),
            strength=self._get(ap_path, NM_ACCESS_POINT_IFACE, 'Strength'),
        )

    def watch_connection_status(self, on_status: Callable[[ConnectionStatus], None]) -> ConnectionWatch:
        device = self.get_wifi_device()
        logger.info(f"Watching connection status of {device.path}")
        return ConnectionWatch(self.transport, device, on_status)

    # ------------------------------------------------------------------------
    # Connection profiles
    # ------------------------------------------------------------------------

    def add_connection(self, ssid: str, security: Optional[WifiSecurity] = None) -> str:
        """Create the provisioning settings profile. Returns its object path."""
        settings = {
            'connection': {
                'uuid': TypedValue('s', PROV_CONNECTION_UUID),
                'type': TypedValue('s', '802-11-wireless'),
                'id': TypedValue('s', PROV_CONNECTION_ID),
            },
            '802-11-wireless': {
                'ssid': TypedValue('ay', ssid.encode('utf-8')),
            },
        }

        if security is not None and security.type == SECURITY_WPA_PSK:
            settings['802-11-wireless']['security'] = TypedValue('s', '802-11-wireless-security')
            settings['802-11-wireless-security'] = {
                'key-mgmt': TypedValue('s', 'wpa-psk'),
                'psk': TypedValue('s', security.psk),
            }

        return self._nm_call(NM_SETTINGS_PATH, NM_SETTINGS_IFACE, 'AddConnection', settings,
                             signature='a{sa{sv}}')

    def remove_connection(self, uuid: str) -> bool:
        """
        Delete the settings profile with the given UUID.

        Returns:
            False if no such profile exists
        """
        try:
            path = self._nm_call(NM_SETTINGS_PATH, NM_SETTINGS_IFACE, 'GetConnectionByUuid', uuid,
                                 signature='s')
        except BusException as e:
            if e.name == NM_ERROR_INVALID_CONNECTION:
                return False
            raise

        self._nm_call(path, NM_SETTINGS_CONNECTION_IFACE, 'Delete', signature='')
        logger.info(f"Removed connection profile {uuid}")
        return True

    def activate_connection(self, device: WifiDevice, connection: str) -> str:
        return self._nm_call(NM_PATH, NM_INTERFACE, 'ActivateConnection',
                             TypedValue('o', connection), TypedValue('o', device.path),
                             TypedValue('o', NO_OBJECT_PATH), signature='ooo')

    def deactivate_connection(self, device: WifiDevice) -> str:
        """Deactivate the device's active connection. Returns its settings path."""
        connection = self._get(device.active_connection, NM_CONNECTION_ACTIVE_IFACE, 'Connection')
        self._nm_call(NM_PATH, NM_INTERFACE, 'DeactivateConnection',
                      TypedValue('o', device.active_connection), signature='o')
        return connection

    def connect(self, ssid: str, security: Optional[WifiSecurity] = None) -> None:
        logger.info(f"Connecting WiFi to {ssid} ({security.type if security else 'open'})")
        # A profile left over from an earlier provisioning would make AddConnection fail
        self.remove_connection(PROV_CONNECTION_UUID)
        connection = self.add_connection(ssid, security)
        device = self.get_wifi_device()
        self.activate_connection(device, connection)

    def disconnect(self) -> None:
        device = self.get_wifi_device()
        if device.active_connection == NO_OBJECT_PATH:
            logger.info("WiFi device has no active connection")
            return

        uuid = self._get(device.active_connection, NM_CONNECTION_ACTIVE_IFACE, 'Uuid')
        logger.info(f"Disconnecting WiFi connection {uuid}")
        self.deactivate_connection(device)
        if uuid == PROV_CONNECTION_UUID:
            self.remove_connection(PROV_CONNECTION_UUID)
