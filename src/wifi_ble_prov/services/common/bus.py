"""
wifi-ble-prov - System Bus Transport

The single shared connection to the system D-Bus, built on dbus-python with
GLib main loop integration.

Besides ordinary proxy calls (used for BlueZ and NetworkManager), the transport
offers a low-level hook: method handlers registered with add_method_handler()
see every inbound method call before libdbus falls back to its default
"unknown method" reply. This is how the provisioning peripheral answers BlueZ
without exporting dbus.service.Object instances.

Threading:
    The connection is created with dbus threads enabled. Filters and signal
    receivers run on the GLib main loop; blocking work is handed to spawn(),
    which runs it on a short-lived daemon thread and posts the outcome back
    to the main loop with GLib.idle_add.
"""

import logging
import threading
from typing import Any, Callable, Dict, List

import dbus
import dbus.exceptions
import dbus.lowlevel
import dbus.mainloop.glib
from gi.repository import GLib

from wifi_ble_prov.constants import DBUS_OM_IFACE, DBUS_PROP_IFACE
from wifi_ble_prov.exceptions.bus_exception import BusException
from wifi_ble_prov.services.common.bus_types import MethodCall, Subscription, TypedValue

logger = logging.getLogger(__name__)

MethodHandler = Callable[[MethodCall], bool]

_SCALAR_TYPES = {
    'b': dbus.Boolean,
    'y': dbus.Byte,
    'n': dbus.Int16,
    'q': dbus.UInt16,
    'i': dbus.Int32,
    'u': dbus.UInt32,
    'x': dbus.Int64,
    't': dbus.UInt64,
    'd': dbus.Double,
    's': dbus.String,
    'o': dbus.ObjectPath,
    'g': dbus.Signature,
}


def to_dbus(value: Any) -> Any:
    """Convert TypedValue leaves (possibly nested in dicts/lists) to dbus-python types."""
    if isinstance(value, TypedValue):
        return _typed_to_dbus(value.signature, value.value)
    if isinstance(value, dict):
        return {key: to_dbus(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dbus(item) for item in value]
    return value


def _typed_to_dbus(signature: str, value: Any) -> Any:
    if signature in _SCALAR_TYPES:
        return _SCALAR_TYPES[signature](value)
    if signature == 'ay':
        return dbus.ByteArray(bytes(value))
    if signature.startswith('a{'):
        return dbus.Dictionary(
            {key: to_dbus(item) for key, item in value.items()},
            signature=signature[2:-1]
        )
    if signature.startswith('a'):
        return dbus.Array([to_dbus(item) for item in value], signature=signature[1:])
    raise ValueError(f"Unsupported signature for typed value: {signature}")


def from_dbus(value: Any) -> Any:
    """Convert dbus-python values returned by the bus into plain Python values."""
    if isinstance(value, dbus.Boolean):
        return bool(value)
    if isinstance(value, bytes):
        return bytes(value)
    if isinstance(value, dbus.Array):
        if value.signature == 'y':
            return bytes(bytearray(int(b) for b in value))
        return [from_dbus(item) for item in value]
    if isinstance(value, dbus.Dictionary):
        return {from_dbus(key): from_dbus(item) for key, item in value.items()}
    if isinstance(value, dbus.Struct):
        return tuple(from_dbus(item) for item in value)
    if isinstance(value, str):
        return str(value)
    if isinstance(value, float):
        return float(value)
    if isinstance(value, int):
        return int(value)
    return value


def _call_once(func: Callable[[Any], None], arg: Any) -> bool:
    func(arg)
    return False  # Don't repeat GLib.idle_add


class SystemBusTransport:
    """
    Shared system bus connection.

    Args:
        bus: dbus-python bus connection. Use SystemBusTransport.connect() to
             create one with the GLib main loop set up.
    """

    def __init__(self, bus):
        self.bus = bus
        self._method_handlers: List[MethodHandler] = []
        self._filter_installed = False

    @classmethod
    def connect(cls) -> 'SystemBusTransport':
        """Connect to the system bus with GLib main loop and thread support."""
        dbus.mainloop.glib.threads_init()
        dbus.mainloop.glib.DBusGMainLoop(set_as_default=True)
        return cls(dbus.SystemBus())

    # ------------------------------------------------------------------------
    # Inbound method calls
    # ------------------------------------------------------------------------

    def add_method_handler(self, handler: MethodHandler) -> None:
        """
        Register a handler for inbound method calls.

        The handler returns True when it took ownership of the call (it will
        reply, or deliberately leave the call unanswered) and False to let
        default dispatch continue.
        """
        if not self._filter_installed:
            self.bus.add_message_filter(self._filter)
            self._filter_installed = True
        self._method_handlers.append(handler)

    def remove_method_handler(self, handler: MethodHandler) -> None:
        if handler in self._method_handlers:
            self._method_handlers.remove(handler)
        if not self._method_handlers and self._filter_installed:
            self.bus.remove_message_filter(self._filter)
            self._filter_installed = False

    def _filter(self, connection, message):
        if not isinstance(message, dbus.lowlevel.MethodCallMessage):
            return dbus.lowlevel.HANDLER_RESULT_NOT_YET_HANDLED

        call = MethodCall(
            path=message.get_path(),
            interface=message.get_interface(),
            member=message.get_member(),
            args=tuple(from_dbus(arg) for arg in message.get_args_list(byte_arrays=True)),
            sender=message.get_sender(),
            message=message,
        )

        for handler in list(self._method_handlers):
            if handler(call):
                return dbus.lowlevel.HANDLER_RESULT_HANDLED
        return dbus.lowlevel.HANDLER_RESULT_NOT_YET_HANDLED

    def reply(self, call: MethodCall, signature: str = '', *values) -> None:
        """Send a method return for call carrying values typed by signature."""
        message = dbus.lowlevel.MethodReturnMessage(call.message)
        if values:
            message.append(*[to_dbus(value) for value in values], signature=signature)
        self.bus.send_message(message)

    def reply_error(self, call: MethodCall, error_name: str, error_message: str = None) -> None:
        self.bus.send_message(dbus.lowlevel.ErrorMessage(call.message, error_name, error_message))

    def emit_signal(self, path: str, interface: str, member: str, signature: str, *values,
                    destination: str = None) -> None:
        message = dbus.lowlevel.SignalMessage(path, interface, member)
        if destination:
            message.set_destination(destination)
        message.append(*[to_dbus(value) for value in values], signature=signature)
        self.bus.send_message(message)

    # ------------------------------------------------------------------------
    # Outbound calls
    # ------------------------------------------------------------------------

    def call(self, service: str, path: str, interface: str, member: str, *args,
             signature: str = None) -> Any:
        """
        Invoke a method on a remote object and return its plain-Python result.

        Raises:
            BusException: the remote side replied with a D-Bus error
        """
        logger.debug(f"Calling {service} {path} {interface}.{member}")
        try:
            proxy = self.bus.get_object(service, path)
            method = dbus.Interface(proxy, interface).get_dbus_method(member)
            kwargs = {'byte_arrays': True}
            if signature is not None:
                kwargs['signature'] = signature
            result = method(*[to_dbus(arg) for arg in args], **kwargs)
        except dbus.exceptions.DBusException as e:
            raise BusException(e.get_dbus_name(), e.get_dbus_message()) from e
        return from_dbus(result)

    def get_property(self, service: str, path: str, interface: str, name: str) -> Any:
        return self.call(service, path, DBUS_PROP_IFACE, 'Get', interface, name, signature='ss')

    def set_property(self, service: str, path: str, interface: str, name: str,
                     value: TypedValue) -> None:
        self.call(service, path, DBUS_PROP_IFACE, 'Set', interface, name, value, signature='ssv')

    def get_managed_objects(self, service: str, path: str = '/') -> Dict[str, Dict[str, Dict[str, Any]]]:
        return self.call(service, path, DBUS_OM_IFACE, 'GetManagedObjects', signature='')

    def subscribe_properties_changed(self, service: str, path: str,
                                     callback: Callable[[str, Dict[str, Any]], None]) -> Subscription:
        """
        Watch org.freedesktop.DBus.Properties.PropertiesChanged on one object.

        callback(interface, changed) runs on the GLib main loop, in the order
        the bus delivers the signals.
        """
        def on_properties_changed(interface, changed, invalidated):
            callback(str(interface), from_dbus(changed))

        match = self.bus.add_signal_receiver(
            on_properties_changed,
            signal_name='PropertiesChanged',
            dbus_interface=DBUS_PROP_IFACE,
            bus_name=service,
            path=path
        )
        logger.debug(f"Subscribed to PropertiesChanged on {path}")
        return Subscription(match.remove)

    # ------------------------------------------------------------------------
    # Work scheduling
    # ------------------------------------------------------------------------

    def spawn(self, work: Callable[[], Any], on_success: Callable[[Any], None],
              on_error: Callable[[Exception], None]) -> None:
        """
        Run work() on a daemon thread; deliver its result or exception on the main loop.

        BLE operations should complete quickly, while the bus calls behind them
        (NetworkManager activation, BlueZ registration) can take a while.
        """
        def run():
            try:
                result = work()
            except Exception as e:
                GLib.idle_add(_call_once, on_error, e)
            else:
                GLib.idle_add(_call_once, on_success, result)

        thread = threading.Thread(target=run, daemon=True)
        thread.start()
