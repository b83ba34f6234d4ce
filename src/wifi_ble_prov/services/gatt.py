"""
wifi-ble-prov - GATT Object Model

Static description of what BlueZ sees when it talks to us:

<root>/adv                 LE advertisement (org.bluez.LEAdvertisement1)
<root>/prov                GATT application root + provisioning service
├── <root>/prov/connected  [READ, NOTIFY]  0x01 / 0x00
├── <root>/prov/mac        [READ]          WiFi hardware address
├── <root>/prov/ap         [READ]          {"ssid", "frequency", "strength"} or empty
└── <root>/prov/command    [WRITE]         encrypted connect / disconnect commands

Nothing here performs I/O. The message dispatcher answers BlueZ's queries
from these objects and invokes the per-characteristic behaviors.

Property sets are exactly what BlueZ reads during RegisterApplication and
RegisterAdvertisement; adding or dropping keys changes what BlueZ exposes.
"""

from collections import OrderedDict
from typing import Dict, List, Optional, Sequence

from wifi_ble_prov.constants import (
    DBUS_PROP_IFACE,
    GATT_CHRC_IFACE,
    GATT_SERVICE_IFACE,
    LE_ADVERTISEMENT_IFACE,
)
from wifi_ble_prov.exceptions.gatt_model_exception import GattModelException
from wifi_ble_prov.services.common.bus_types import TypedValue

FLAG_READ = 'read'
FLAG_WRITE = 'write'
FLAG_NOTIFY = 'notify'

# Behavior operations each flag requires
FLAG_OPERATIONS = {
    FLAG_READ: ('read',),
    FLAG_WRITE: ('write',),
    FLAG_NOTIFY: ('start_notify', 'stop_notify'),
}


class Advertisement:
    """
    BLE Advertisement - makes the device discoverable to phones.

    - Type: "peripheral" (phones connect TO us)
    - ServiceUUIDs: the provisioning service, so apps can filter scans
    - LocalName: broadcast name from the configuration
    - IncludeTxPower: lets the app estimate distance
    """

    def __init__(self, path: str, local_name: str, service_uuids: Sequence[str]):
        self.path = path
        self.ad_type = 'peripheral'
        self.local_name = local_name
        self.service_uuids = list(service_uuids)
        self.include_tx_power = True

    def get_properties(self) -> Dict[str, TypedValue]:
        """Return org.bluez.LEAdvertisement1 properties (a{sv})."""
        return {
            'Type': TypedValue('s', self.ad_type),
            'ServiceUUIDs': TypedValue('as', list(self.service_uuids)),
            'LocalName': TypedValue('s', self.local_name),
            'IncludeTxPower': TypedValue('b', self.include_tx_power),
        }

    def get_path(self) -> str:
        return self.path


class Characteristic:
    """
    A GATT characteristic: UUID, capability flags and the behavior behind them.

    The behavior must implement exactly the operations its flags imply
    (see FLAG_OPERATIONS); this is checked here, once, rather than probed
    on every call.

    Args:
        key: last path element, e.g. 'connected'
        uuid: 128-bit UUID
        flags: subset of {'read', 'write', 'notify'}
        behavior: object implementing the operations for the flags
        service: parent service
    """

    def __init__(self, key: str, uuid: str, flags: Sequence[str], behavior, service: 'Service'):
        unknown = [flag for flag in flags if flag not in FLAG_OPERATIONS]
        if unknown:
            raise GattModelException(f"Characteristic {key}: unknown flags {unknown}")

        for flag in flags:
            for operation in FLAG_OPERATIONS[flag]:
                if not callable(getattr(behavior, operation, None)):
                    raise GattModelException(
                        f"Characteristic {key}: flag '{flag}' requires behavior.{operation}()"
                    )

        self.key = key
        self.uuid = uuid
        self.flags = list(flags)
        self.behavior = behavior
        self.service = service
        self.path = f"{service.path}/{key}"

    def supports(self, flag: str) -> bool:
        return flag in self.flags

    def get_properties(self) -> Dict[str, Dict[str, TypedValue]]:
        return {
            DBUS_PROP_IFACE: {},
            GATT_CHRC_IFACE: {
                'UUID': TypedValue('s', self.uuid),
                'Service': TypedValue('o', self.service.get_path()),
                'Flags': TypedValue('as', list(self.flags)),
            }
        }

    def get_path(self) -> str:
        return self.path


class Service:
    """A primary GATT service with an ordered set of characteristics."""

    def __init__(self, path: str, uuid: str, primary: bool = True):
        self.path = path
        self.uuid = uuid
        self.primary = primary
        self.characteristics: 'OrderedDict[str, Characteristic]' = OrderedDict()

    def add_characteristic(self, key: str, uuid: str, flags: Sequence[str], behavior) -> Characteristic:
        if key in self.characteristics:
            raise GattModelException(f"Duplicate characteristic key: {key}")
        characteristic = Characteristic(key, uuid, flags, behavior, self)
        self.characteristics[key] = characteristic
        return characteristic

    def get_characteristic(self, key: str) -> Optional[Characteristic]:
        return self.characteristics.get(key)

    def get_characteristics(self) -> List[Characteristic]:
        return list(self.characteristics.values())

    def get_properties(self) -> Dict[str, Dict[str, TypedValue]]:
        return {
            DBUS_PROP_IFACE: {},
            GATT_SERVICE_IFACE: {
                'Primary': TypedValue('b', self.primary),
                'UUID': TypedValue('s', self.uuid),
            }
        }

    def get_path(self) -> str:
        return self.path


class Application:
    """
    GATT Application - the object tree registered with GattManager1.

    The application root shares its path with the (single) service, so
    GetManagedObjects on <root>/prov lists the service itself plus one child
    per characteristic.
    """

    def __init__(self, service: Service):
        self.service = service
        self.path = service.path

    def get_path(self) -> str:
        return self.path

    def get_managed_objects(self) -> Dict[str, Dict[str, Dict[str, TypedValue]]]:
        """
        Return {object_path: {interface: {property: value}}} (a{oa{sa{sv}}}).

        Built fresh on every call; the model itself is never modified.
        """
        response = {self.service.get_path(): self.service.get_properties()}
        for characteristic in self.service.get_characteristics():
            response[characteristic.get_path()] = characteristic.get_properties()
        return response

    def resolve_characteristic(self, path: str) -> Optional[str]:
        """
        Return the characteristic key for a child object path.

        None means the path is not below this application at all; a key that
        does not exist in the service is returned as-is for the caller to
        reject.
        """
        prefix = f"{self.path}/"
        if not path.startswith(prefix):
            return None
        return path[len(prefix):]
