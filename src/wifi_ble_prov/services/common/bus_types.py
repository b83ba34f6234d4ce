"""
wifi-ble-prov - D-Bus value types

Plain Python description of what travels over the bus, independent of the
binding in use. Only common.bus knows how to turn these into dbus-python types.
"""

from dataclasses import dataclass, field
from typing import Any, Tuple


@dataclass(frozen=True)
class TypedValue:
    """
    A value with an explicit D-Bus signature.

    Used wherever the signature cannot be inferred from the Python type alone,
    most importantly for the variants inside a{sv} property dictionaries, so
    that BlueZ always receives exactly the types it expects.

    Example:
        TypedValue('as', ['c607d27b-8541-4947-0000-47258ea5e9d7'])
    """
    signature: str
    value: Any


@dataclass(frozen=True)
class MethodCall:
    """An inbound method call, as seen by the message dispatcher."""
    path: str
    interface: str
    member: str
    args: Tuple[Any, ...] = ()
    sender: str = None
    # Binding-level message, needed by the transport to address the reply
    message: Any = field(default=None, compare=False, repr=False)


class Subscription:
    """
    Handle to an active signal subscription.

    cancel() detaches the underlying receiver; calling it again is a no-op.
    """

    def __init__(self, cancel):
        self._cancel = cancel

    @property
    def active(self) -> bool:
        return self._cancel is not None

    def cancel(self) -> None:
        if self._cancel is None:
            return
        cancel, self._cancel = self._cancel, None
        cancel()
