"""
wifi-ble-prov - Message Dispatcher

Answers BlueZ's method calls on our objects without exporting
dbus.service.Object instances. Every inbound method call on the transport
passes through MessageDispatcher.dispatch(), which routes it by
(object path, interface, member):

    <root>/adv           Properties.GetAll                  -> a{sv} advertisement properties
    <root>/adv           LEAdvertisement1.Release           -> empty reply
    <root>/prov          ObjectManager.GetManagedObjects    -> a{oa{sa{sv}}} object tree
    <root>/prov/<key>    GattCharacteristic1.StartNotify    -> empty reply
                         GattCharacteristic1.StopNotify     -> empty reply
                         GattCharacteristic1.ReadValue      -> ay
                         GattCharacteristic1.WriteValue     -> u (0)

Outcomes:
- Calls we don't recognize are not ours: dispatch() returns False and default
  handling applies.
- Unknown characteristic keys and operations a characteristic does not declare
  are logged and left unanswered (BlueZ times the operation out).
- Behavior failures of any kind are answered with org.bluez.Error.Failed. The
  underlying message only goes to the local log.
"""

import logging
from typing import Any, Callable

from wifi_ble_prov.constants import (
    BLUEZ_ERROR_FAILED,
    BLUEZ_SERVICE_NAME,
    DBUS_OM_IFACE,
    DBUS_PROP_IFACE,
    GATT_CHRC_IFACE,
    LE_ADVERTISEMENT_IFACE,
)
from wifi_ble_prov.services.common.bus_types import MethodCall, TypedValue
from wifi_ble_prov.services.gatt import (
    FLAG_NOTIFY,
    FLAG_READ,
    FLAG_WRITE,
    Advertisement,
    Application,
    Characteristic,
)

logger = logging.getLogger(__name__)

WRITE_STATUS_OK = 0


class MessageDispatcher:
    """
    Routes inbound method calls to the GATT object model.

    Args:
        transport: bus transport used for replies, signals and spawning work
        application: GATT application (service root and characteristics)
        advertisement: LE advertisement object
    """

    def __init__(self, transport, application: Application, advertisement: Advertisement):
        self.transport = transport
        self.application = application
        self.advertisement = advertisement
        self._characteristic_members = {
            'StartNotify': (FLAG_NOTIFY, self._start_notify),
            'StopNotify': (FLAG_NOTIFY, self._stop_notify),
            'ReadValue': (FLAG_READ, self._read_value),
            'WriteValue': (FLAG_WRITE, self._write_value),
        }

    def dispatch(self, call: MethodCall) -> bool:
        """
        Handle one inbound method call.

        Returns:
            True if the call belongs to this peripheral (answered now, answered
            later, or deliberately left unanswered), False otherwise.
        """
        logger.debug(f"Inbound call {call.interface}.{call.member} on {call.path}")

        if call.path == self.advertisement.get_path():
            return self._dispatch_advertisement(call)
        if call.path == self.application.get_path():
            return self._dispatch_application(call)

        key = self.application.resolve_characteristic(call.path)
        if key is None or call.interface != GATT_CHRC_IFACE:
            return False

        characteristic = self.application.service.get_characteristic(key)
        if characteristic is None:
            logger.error(f"Unknown characteristic {key!r} in {call.member} on {call.path}")
            return True

        member = self._characteristic_members.get(call.member)
        if member is None:
            return False

        flag, handler = member
        if not characteristic.supports(flag):
            logger.error(f"Characteristic {key!r} does not support {call.member} (flags: {characteristic.flags})")
            return True

        handler(call, characteristic)
        return True

    # ------------------------------------------------------------------------
    # Advertisement and object tree
    # ------------------------------------------------------------------------

    def _dispatch_advertisement(self, call: MethodCall) -> bool:
        if call.interface == DBUS_PROP_IFACE and call.member == 'GetAll':
            self.transport.reply(call, 'a{sv}', self.advertisement.get_properties())
            return True
        if call.interface == LE_ADVERTISEMENT_IFACE and call.member == 'Release':
            logger.info(f"Advertisement released: {call.path}")
            self.transport.reply(call)
            return True
        return False

    def _dispatch_application(self, call: MethodCall) -> bool:
        if call.interface == DBUS_OM_IFACE and call.member == 'GetManagedObjects':
            self.transport.reply(call, 'a{oa{sa{sv}}}', self.application.get_managed_objects())
            return True
        return False

    # ------------------------------------------------------------------------
    # Characteristic operations
    # ------------------------------------------------------------------------

    def _run(self, call: MethodCall, work: Callable[[], Any], on_success: Callable[[Any], None]) -> None:
        """Run a behavior off the main loop and answer the call with its outcome."""
        def on_error(e: Exception):
            logger.error(f"{call.member} failed on {call.path}: {e}")
            self.transport.reply_error(call, BLUEZ_ERROR_FAILED)

        def on_result(result: Any):
            try:
                on_success(result)
            except Exception as e:
                on_error(e)

        self.transport.spawn(work, on_result, on_error)

    def _notifier(self, characteristic: Characteristic) -> Callable[[bytes], None]:
        path = characteristic.get_path()

        def notify(value: bytes):
            logger.debug(f"Notifying {path}: {value!r}")
            self.transport.emit_signal(
                path,
                DBUS_PROP_IFACE,
                'PropertiesChanged',
                'sa{sv}as',
                GATT_CHRC_IFACE,
                {'Value': TypedValue('ay', value)},
                [],
                destination=BLUEZ_SERVICE_NAME
            )

        return notify

    def _start_notify(self, call: MethodCall, characteristic: Characteristic) -> None:
        notify = self._notifier(characteristic)
        self._run(
            call,
            lambda: characteristic.behavior.start_notify(notify),
            lambda _: self.transport.reply(call)
        )

    def _stop_notify(self, call: MethodCall, characteristic: Characteristic) -> None:
        self._run(
            call,
            characteristic.behavior.stop_notify,
            lambda _: self.transport.reply(call)
        )

    def _read_value(self, call: MethodCall, characteristic: Characteristic) -> None:
        self._run(
            call,
            characteristic.behavior.read,
            lambda value: self.transport.reply(call, 'ay', TypedValue('ay', value))
        )

    def _write_value(self, call: MethodCall, characteristic: Characteristic) -> None:
        def write():
            if not call.args:
                raise ValueError("WriteValue without a value")
            characteristic.behavior.write(bytes(call.args[0]))

        self._run(
            call,
            write,
            lambda _: self.transport.reply(call, 'u', TypedValue('u', WRITE_STATUS_OK))
        )
