"""
wifi-ble-prov - Peripheral Installer

One-shot setup of the provisioning peripheral:

1. Refuse to install twice
2. Build the GATT object model and advertisement
3. Hook the message dispatcher into the bus transport
4. Power on the Bluetooth adapter
5. Register the GATT application with GattManager1
6. Register the advertisement with LEAdvertisingManager1

The application is registered before advertising starts so that a phone that
connects right away finds the full object tree. Any failure aborts the
remaining steps, unhooks the dispatcher and propagates to the caller.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from wifi_ble_prov.constants import (
    ADAPTER_IFACE,
    ADVERTISEMENT_SUFFIX,
    AP_CHRC_UUID,
    BLUEZ_SERVICE_NAME,
    COMMAND_CHRC_UUID,
    CONNECTED_CHRC_UUID,
    GATT_MANAGER_IFACE,
    LE_ADVERTISING_MANAGER_IFACE,
    MAC_CHRC_UUID,
    PROV_SERVICE_UUID,
    SERVICE_SUFFIX,
)
from wifi_ble_prov.exceptions.installation_exception import (
    AdapterNotFoundException,
    InstallationException,
)
from wifi_ble_prov.services.characteristics import (
    AccessPointBehavior,
    CommandBehavior,
    ConnectedBehavior,
    MacBehavior,
)
from wifi_ble_prov.services.command_protocol import CommandProtocol
from wifi_ble_prov.services.common.bus_types import MethodCall, TypedValue
from wifi_ble_prov.services.dispatcher import MessageDispatcher
from wifi_ble_prov.services.gatt import (
    FLAG_NOTIFY,
    FLAG_READ,
    FLAG_WRITE,
    Advertisement,
    Application,
    Service,
)

logger = logging.getLogger(__name__)


@dataclass
class Installation:
    root_path: str
    adapter_path: str
    application: Application
    advertisement: Advertisement
    dispatcher: MessageDispatcher
    handler: Callable[[MethodCall], bool]
    connected: ConnectedBehavior

    @property
    def application_path(self) -> str:
        return self.application.get_path()

    @property
    def advertisement_path(self) -> str:
        return self.advertisement.get_path()


def build_model(root_path: str, local_name: str, network,
                protocol: CommandProtocol) -> Tuple[Application, Advertisement, ConnectedBehavior]:
    """Create the provisioning service, its characteristics and the advertisement."""
    service = Service(f"{root_path}{SERVICE_SUFFIX}", PROV_SERVICE_UUID, primary=True)

    connected = ConnectedBehavior(network)
    service.add_characteristic('connected', CONNECTED_CHRC_UUID, [FLAG_NOTIFY, FLAG_READ], connected)
    service.add_characteristic('mac', MAC_CHRC_UUID, [FLAG_READ], MacBehavior(network))
    service.add_characteristic('ap', AP_CHRC_UUID, [FLAG_READ], AccessPointBehavior(network))
    service.add_characteristic('command', COMMAND_CHRC_UUID, [FLAG_WRITE], CommandBehavior(protocol))

    advertisement = Advertisement(f"{root_path}{ADVERTISEMENT_SUFFIX}", local_name, [service.uuid])
    return Application(service), advertisement, connected


class ProvisioningInstaller:
    """
    Owns the (single) installed provisioning peripheral.

    Args:
        transport: bus transport shared with the rest of the process
        network: NetworkManagerClient used by the characteristics
        local_key: 32-byte AES-256 key for the command protocol
    """

    def __init__(self, transport, network, local_key: bytes):
        self.transport = transport
        self.network = network
        self.local_key = local_key
        self._installation = None
        self._installing = False
        self._lock = threading.Lock()

    @property
    def installation(self):
        return self._installation

    @property
    def installed(self) -> bool:
        return self._installation is not None

    # ------------------------------------------------------------------------
    # Adapter
    # ------------------------------------------------------------------------

    def get_default_adapter(self) -> str:
        """
        Find the first Bluetooth adapter known to BlueZ.

        Not cached: each call re-reads BlueZ's object tree so a replaced
        adapter is picked up.

        Raises:
            AdapterNotFoundException: no object implements org.bluez.Adapter1
        """
        objects = self.transport.get_managed_objects(BLUEZ_SERVICE_NAME, '/')
        for path, interfaces in objects.items():
            if ADAPTER_IFACE in interfaces:
                return path
        raise AdapterNotFoundException()

    def is_powered(self) -> bool:
        adapter = self.get_default_adapter()
        return bool(self.transport.get_property(BLUEZ_SERVICE_NAME, adapter, ADAPTER_IFACE, 'Powered'))

    def set_power(self, enabled: bool) -> None:
        adapter = self.get_default_adapter()
        self.transport.set_property(BLUEZ_SERVICE_NAME, adapter, ADAPTER_IFACE, 'Powered',
                                    TypedValue('b', enabled))
        logger.info(f"Bluetooth adapter {adapter} powered {'on' if enabled else 'off'}")

    # ------------------------------------------------------------------------
    # Install / uninstall
    # ------------------------------------------------------------------------

    def install(self, root_path: str, local_name: str) -> Installation:
        """
        Install the peripheral under root_path, advertising as local_name.

        Raises:
            InstallationException: already installed (or being installed),
                                   or no adapter found
            BusException: a BlueZ call failed
        """
        with self._lock:
            if self._installation is not None or self._installing:
                raise InstallationException("Provisioning peripheral already installed")
            self._installing = True

        try:
            protocol = CommandProtocol(self.network, self.local_key)
            application, advertisement, connected = build_model(root_path, local_name, self.network, protocol)
            dispatcher = MessageDispatcher(self.transport, application, advertisement)
            handler = dispatcher.dispatch
            self.transport.add_method_handler(handler)

            try:
                if not self.is_powered():
                    self.set_power(True)

                adapter = self.get_default_adapter()
                logger.info(f"Using Bluetooth adapter: {adapter}")

                self.transport.call(BLUEZ_SERVICE_NAME, adapter, GATT_MANAGER_IFACE, 'RegisterApplication',
                                    TypedValue('o', application.get_path()), {}, signature='oa{sv}')
                logger.info(f"GATT application registered at {application.get_path()}")

                self.transport.call(BLUEZ_SERVICE_NAME, adapter, LE_ADVERTISING_MANAGER_IFACE,
                                    'RegisterAdvertisement',
                                    TypedValue('o', advertisement.get_path()), {}, signature='oa{sv}')
                logger.info(f"Advertisement registered at {advertisement.get_path()} as {local_name}")
            except Exception:
                self.transport.remove_method_handler(handler)
                raise

            installation = Installation(
                root_path=root_path,
                adapter_path=adapter,
                application=application,
                advertisement=advertisement,
                dispatcher=dispatcher,
                handler=handler,
                connected=connected,
            )
            with self._lock:
                self._installation = installation
            return installation
        finally:
            with self._lock:
                self._installing = False

    def _unregister(self, installation: Installation, interface: str, member: str,
                    path: str) -> Optional[Exception]:
        try:
            self.transport.call(BLUEZ_SERVICE_NAME, installation.adapter_path, interface, member,
                                TypedValue('o', path), signature='o')
        except Exception as e:
            logger.error(f"{member} failed for {path}: {e}")
            return e
        return None

    def uninstall(self) -> None:
        """
        Unregister advertisement and application and unhook the dispatcher.

        Every step is attempted even if an earlier one fails; the first
        failure is raised afterwards. No-op if not installed.
        """
        with self._lock:
            installation, self._installation = self._installation, None
        if installation is None:
            return

        errors = [
            self._unregister(installation, LE_ADVERTISING_MANAGER_IFACE, 'UnregisterAdvertisement',
                             installation.advertisement_path),
            self._unregister(installation, GATT_MANAGER_IFACE, 'UnregisterApplication',
                             installation.application_path),
        ]
        try:
            installation.connected.stop_notify()
        finally:
            self.transport.remove_method_handler(installation.handler)

        failures = [e for e in errors if e is not None]
        if failures:
            raise failures[0]
        logger.info("Provisioning peripheral unregistered")
