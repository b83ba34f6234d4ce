from __future__ import annotations

from wifi_ble_prov.services.characteristics import (
    AccessPointBehavior,
    CommandBehavior,
    ConnectedBehavior,
    MacBehavior,
)
from wifi_ble_prov.services.common.network import ConnectionStatus


def test_connected_read_asks_network_without_watch(network) -> None:
    behavior = ConnectedBehavior(network)

    assert behavior.read() == b'\x00'
    network.status = ConnectionStatus(connected=True)
    assert behavior.read() == b'\x01'


def test_connected_notifications_follow_the_watch(network) -> None:
    behavior = ConnectedBehavior(network)
    sent = []

    behavior.start_notify(sent.append)
    watch = network.watches[0]
    watch.emit(True)
    watch.emit(False)

    assert sent == [b'\x01', b'\x00']
    # reads come from the watch while it is open
    watch.connected = True
    assert behavior.read() == b'\x01'


def test_start_notify_twice_keeps_a_single_watch(network) -> None:
    behavior = ConnectedBehavior(network)

    behavior.start_notify(lambda value: None)
    behavior.start_notify(lambda value: None)

    assert len(network.watches) == 1


def test_stop_notify_closes_the_watch(network) -> None:
    behavior = ConnectedBehavior(network)
    behavior.start_notify(lambda value: None)

    behavior.stop_notify()
    behavior.stop_notify()

    assert network.watches[0].closed
    assert not behavior.watching


def test_mac_read(network) -> None:
    assert MacBehavior(network).read() == b'B8:27:EB:12:34:56'


def test_access_point_read_when_connected(network) -> None:
    network.status = ConnectionStatus(connected=True, ssid='home-net', frequency=2437, strength=70)

    assert AccessPointBehavior(network).read() == b'{"ssid":"home-net","frequency":2437,"strength":70}'


def test_access_point_read_when_disconnected(network) -> None:
    assert AccessPointBehavior(network).read() == b''


def test_command_write_is_handed_to_protocol() -> None:
    received = []

    class Protocol:
        def handle(self, data: bytes) -> None:
            received.append(data)

    CommandBehavior(Protocol()).write(b'{}')

    assert received == [b'{}']


def test_access_point_read_without_associated_access_point(network) -> None:
    network.status = ConnectionStatus(connected=True)

    assert AccessPointBehavior(network).read() == b''
