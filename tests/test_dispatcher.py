from __future__ import annotations

import pytest

from wifi_ble_prov.constants import (
    BLUEZ_ERROR_FAILED,
    DBUS_OM_IFACE,
    DBUS_PROP_IFACE,
    GATT_CHRC_IFACE,
    LE_ADVERTISEMENT_IFACE,
)
from wifi_ble_prov.services.command_protocol import CommandProtocol
from wifi_ble_prov.services.common.bus_types import MethodCall, TypedValue
from wifi_ble_prov.services.common.network import ConnectionStatus, WifiSecurity
from wifi_ble_prov.services.dispatcher import MessageDispatcher
from wifi_ble_prov.services.installer import build_model

from test_command_protocol import connect_payload

ROOT = '/com/wifi_ble_prov'
PROV = f'{ROOT}/prov'


@pytest.fixture
def dispatcher(transport, network, local_key) -> MessageDispatcher:
    application, advertisement, _ = build_model(ROOT, 'wifi-prov', network, CommandProtocol(network, local_key))
    return MessageDispatcher(transport, application, advertisement)


def chrc_call(key: str, member: str, *args) -> MethodCall:
    return MethodCall(path=f'{PROV}/{key}', interface=GATT_CHRC_IFACE, member=member, args=args)


def test_advertisement_get_all(dispatcher, transport) -> None:
    call = MethodCall(path=f'{ROOT}/adv', interface=DBUS_PROP_IFACE, member='GetAll',
                      args=(LE_ADVERTISEMENT_IFACE,))

    assert dispatcher.dispatch(call)

    [(replied, signature, values)] = transport.replies
    assert replied is call
    assert signature == 'a{sv}'
    assert values[0]['LocalName'] == TypedValue('s', 'wifi-prov')


def test_advertisement_release(dispatcher, transport) -> None:
    call = MethodCall(path=f'{ROOT}/adv', interface=LE_ADVERTISEMENT_IFACE, member='Release')

    assert dispatcher.dispatch(call)
    assert transport.replies == [(call, '', ())]


def test_get_managed_objects(dispatcher, transport) -> None:
    call = MethodCall(path=PROV, interface=DBUS_OM_IFACE, member='GetManagedObjects')

    assert dispatcher.dispatch(call)

    [(_, signature, values)] = transport.replies
    assert signature == 'a{oa{sa{sv}}}'
    assert f'{PROV}/command' in values[0]


def test_read_value(dispatcher, transport) -> None:
    call = chrc_call('mac', 'ReadValue', {})

    assert dispatcher.dispatch(call)
    assert transport.replies == [(call, 'ay', (TypedValue('ay', b'B8:27:EB:12:34:56'),))]


def test_read_access_point(dispatcher, transport, network) -> None:
    network.status = ConnectionStatus(connected=True, ssid='home-net', frequency=2437, strength=70)

    dispatcher.dispatch(chrc_call('ap', 'ReadValue', {}))

    [(_, _, values)] = transport.replies
    assert values[0].value == b'{"ssid":"home-net","frequency":2437,"strength":70}'


def test_write_value_runs_command(dispatcher, transport, network, local_key) -> None:
    call = chrc_call('command', 'WriteValue', connect_payload(local_key, 'home-net', 's3cr3t!'), {})

    assert dispatcher.dispatch(call)

    assert transport.replies == [(call, 'u', (TypedValue('u', 0),))]
    assert network.connects == [('home-net', WifiSecurity(type='wpa-psk', psk='s3cr3t!'))]


def test_failed_write_is_answered_with_generic_error(dispatcher, transport, network) -> None:
    call = chrc_call('command', 'WriteValue', b'{not json', {})

    assert dispatcher.dispatch(call)

    assert transport.replies == []
    assert transport.errors == [(call, BLUEZ_ERROR_FAILED, None)]
    assert network.connects == []


def test_failed_read_is_answered_with_generic_error(dispatcher, transport, network) -> None:
    def broken():
        raise RuntimeError('NetworkManager is gone')

    network.get_mac = broken
    call = chrc_call('mac', 'ReadValue', {})

    dispatcher.dispatch(call)

    assert transport.errors == [(call, BLUEZ_ERROR_FAILED, None)]


def test_notify_emits_properties_changed(dispatcher, transport, network) -> None:
    call = chrc_call('connected', 'StartNotify')

    assert dispatcher.dispatch(call)
    assert transport.replies == [(call, '', ())]

    network.watches[0].emit(True)

    assert transport.signals == [{
        'path': f'{PROV}/connected',
        'interface': DBUS_PROP_IFACE,
        'member': 'PropertiesChanged',
        'signature': 'sa{sv}as',
        'values': (GATT_CHRC_IFACE, {'Value': TypedValue('ay', b'\x01')}, []),
        'destination': 'org.bluez',
    }]


def test_start_notify_twice_keeps_one_watch(dispatcher, transport, network) -> None:
    dispatcher.dispatch(chrc_call('connected', 'StartNotify'))
    dispatcher.dispatch(chrc_call('connected', 'StartNotify'))

    assert len(network.watches) == 1
    assert len(transport.replies) == 2

    network.watches[0].emit(True)

    assert len(transport.signals) == 1


def test_stop_notify_closes_watch(dispatcher, transport, network) -> None:
    dispatcher.dispatch(chrc_call('connected', 'StartNotify'))
    dispatcher.dispatch(chrc_call('connected', 'StopNotify'))

    assert network.watches[0].closed


def test_operation_without_flag_is_left_unanswered(dispatcher, transport) -> None:
    assert dispatcher.dispatch(chrc_call('command', 'ReadValue', {}))
    assert dispatcher.dispatch(chrc_call('mac', 'StartNotify'))

    assert transport.replies == []
    assert transport.errors == []


def test_unknown_characteristic_is_left_unanswered(dispatcher, transport) -> None:
    assert dispatcher.dispatch(chrc_call('battery', 'ReadValue', {}))

    assert transport.replies == []
    assert transport.errors == []


def test_foreign_calls_are_not_handled(dispatcher, transport) -> None:
    assert not dispatcher.dispatch(chrc_call('mac', 'Confirm'))
    assert not dispatcher.dispatch(MethodCall(path=f'{PROV}/mac', interface=DBUS_PROP_IFACE, member='GetAll'))
    assert not dispatcher.dispatch(MethodCall(path='/org/bluez/hci0', interface=GATT_CHRC_IFACE,
                                              member='ReadValue'))
    assert not dispatcher.dispatch(MethodCall(path=PROV, interface=DBUS_PROP_IFACE, member='GetAll'))

    assert transport.replies == []
