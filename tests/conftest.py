from __future__ import annotations

from typing import Any, Callable

import pytest

from wifi_ble_prov.services.common.bus_types import MethodCall, Subscription, TypedValue
from wifi_ble_prov.services.common.network import ConnectionStatus


class FakeTransport:
    """In-memory stand-in for SystemBusTransport; spawn() runs work inline."""

    def __init__(self) -> None:
        self.handlers: list[Callable[[MethodCall], bool]] = []
        self.replies: list[tuple[MethodCall, str, tuple]] = []
        self.errors: list[tuple[MethodCall, str, str | None]] = []
        self.signals: list[dict[str, Any]] = []
        self.calls: list[tuple[str, str, str, str, tuple, str | None]] = []
        self.responses: dict[tuple[str, str, str, str], Any] = {}
        self.properties: dict[tuple[str, str, str, str], Any] = {}
        self.property_writes: list[tuple[str, str, str, str, TypedValue]] = []
        self.managed_objects: dict[str, dict] = {}
        self.subscriptions: list[tuple[str, str, Callable, Subscription]] = []

    # inbound
    def add_method_handler(self, handler: Callable[[MethodCall], bool]) -> None:
        self.handlers.append(handler)

    def remove_method_handler(self, handler: Callable[[MethodCall], bool]) -> None:
        if handler in self.handlers:
            self.handlers.remove(handler)

    def deliver(self, call: MethodCall) -> bool:
        return any(handler(call) for handler in list(self.handlers))

    def reply(self, call: MethodCall, signature: str = '', *values) -> None:
        self.replies.append((call, signature, values))

    def reply_error(self, call: MethodCall, error_name: str, error_message: str | None = None) -> None:
        self.errors.append((call, error_name, error_message))

    def emit_signal(self, path: str, interface: str, member: str, signature: str, *values,
                    destination: str | None = None) -> None:
        self.signals.append({
            'path': path,
            'interface': interface,
            'member': member,
            'signature': signature,
            'values': values,
            'destination': destination,
        })

    # outbound
    def call(self, service: str, path: str, interface: str, member: str, *args, signature: str | None = None) -> Any:
        self.calls.append((service, path, interface, member, args, signature))
        response = self.responses.get((service, path, interface, member))
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response(*args)
        return response

    def members(self) -> list[str]:
        return [member for _, _, _, member, _, _ in self.calls]

    def get_property(self, service: str, path: str, interface: str, name: str) -> Any:
        return self.properties[(service, path, interface, name)]

    def set_property(self, service: str, path: str, interface: str, name: str, value: TypedValue) -> None:
        self.property_writes.append((service, path, interface, name, value))
        self.properties[(service, path, interface, name)] = value.value

    def get_managed_objects(self, service: str, path: str = '/') -> dict:
        return self.managed_objects.get(service, {})

    def subscribe_properties_changed(self, service: str, path: str, callback: Callable) -> Subscription:
        subscription = Subscription(lambda: None)
        self.subscriptions.append((service, path, callback, subscription))
        return subscription

    def fire_properties_changed(self, path: str, interface: str, changed: dict) -> None:
        for _, sub_path, callback, subscription in list(self.subscriptions):
            if sub_path == path and subscription.active:
                callback(interface, changed)

    def spawn(self, work, on_success, on_error) -> None:
        try:
            result = work()
        except Exception as e:
            on_error(e)
        else:
            on_success(result)


class FakeWatch:
    def __init__(self, on_status: Callable[[ConnectionStatus], None], connected: bool) -> None:
        self.on_status = on_status
        self.connected = connected
        self.closed = False

    def emit(self, connected: bool) -> None:
        self.connected = connected
        self.on_status(ConnectionStatus(connected=connected))

    def close(self) -> None:
        self.closed = True


class FakeNetwork:
    def __init__(self) -> None:
        self.status = ConnectionStatus(connected=False)
        self.mac = 'B8:27:EB:12:34:56'
        self.connects: list[tuple] = []
        self.disconnects = 0
        self.watches: list[FakeWatch] = []

    def connect(self, ssid, security=None) -> None:
        self.connects.append((ssid, security))

    def disconnect(self) -> None:
        self.disconnects += 1

    def get_connection_status(self) -> ConnectionStatus:
        return self.status

    def get_mac(self) -> str:
        return self.mac

    def watch_connection_status(self, on_status) -> FakeWatch:
        watch = FakeWatch(on_status, self.status.connected)
        self.watches.append(watch)
        return watch


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
def local_key() -> bytes:
    return bytes(range(32))
