from __future__ import annotations

import pytest

dbus = pytest.importorskip('dbus')
pytest.importorskip('gi')

import dbus.lowlevel  # noqa: E402

from wifi_ble_prov.services.common.bus import SystemBusTransport, from_dbus, to_dbus  # noqa: E402
from wifi_ble_prov.services.common.bus_types import TypedValue  # noqa: E402


class FakeBus:
    def __init__(self) -> None:
        self.filters = []

    def add_message_filter(self, func) -> None:
        self.filters.append(func)

    def remove_message_filter(self, func) -> None:
        self.filters.remove(func)


def test_to_dbus_converts_typed_values() -> None:
    converted = to_dbus({
        'Type': TypedValue('s', 'peripheral'),
        'ServiceUUIDs': TypedValue('as', ['c607d27b-8541-4947-0000-47258ea5e9d7']),
        'IncludeTxPower': TypedValue('b', True),
        'Value': TypedValue('ay', b'\x01'),
    })

    assert isinstance(converted['Type'], dbus.String)
    assert isinstance(converted['ServiceUUIDs'], dbus.Array)
    assert converted['ServiceUUIDs'].signature == 's'
    assert isinstance(converted['IncludeTxPower'], dbus.Boolean)
    assert isinstance(converted['Value'], dbus.ByteArray)


def test_from_dbus_returns_plain_values() -> None:
    value = from_dbus(dbus.Dictionary({
        'Powered': dbus.Boolean(True),
        'Ssid': dbus.Array([dbus.Byte(104), dbus.Byte(105)], signature='y'),
        'Frequency': dbus.UInt32(2437),
    }, signature='sv'))

    assert value == {'Powered': True, 'Ssid': b'hi', 'Frequency': 2437}
    assert type(value['Powered']) is bool


def test_filter_routes_method_calls_to_handlers() -> None:
    bus = FakeBus()
    transport = SystemBusTransport(bus)
    seen = []

    def handler(call) -> bool:
        seen.append(call)
        return call.member == 'ReadValue'

    transport.add_method_handler(handler)
    read = dbus.lowlevel.MethodCallMessage(
        'org.example', '/com/wifi_ble_prov/prov/mac', 'org.bluez.GattCharacteristic1', 'ReadValue'
    )
    other = dbus.lowlevel.MethodCallMessage(
        'org.example', '/com/wifi_ble_prov/prov/mac', 'org.bluez.GattCharacteristic1', 'Confirm'
    )

    assert transport._filter(None, read) == dbus.lowlevel.HANDLER_RESULT_HANDLED
    assert transport._filter(None, other) == dbus.lowlevel.HANDLER_RESULT_NOT_YET_HANDLED
    assert [call.member for call in seen] == ['ReadValue', 'Confirm']
    assert seen[0].path == '/com/wifi_ble_prov/prov/mac'

    transport.remove_method_handler(handler)
    assert bus.filters == []
