"""
wifi-ble-prov - systemd Integration

Readiness and status notifications, the watchdog ping and graceful shutdown
on SIGTERM/SIGINT.
"""

import logging
import signal
from typing import Callable, Optional

import sdnotify

logger = logging.getLogger(__name__)

WATCHDOG_INTERVAL = 30  # seconds; keep below WatchdogSec in the unit file

_sd_notifier: Optional[sdnotify.SystemdNotifier] = None


def get_systemd_notifier() -> sdnotify.SystemdNotifier:
    """Shared notifier; a no-op when not running under systemd."""
    global _sd_notifier
    if _sd_notifier is None:
        _sd_notifier = sdnotify.SystemdNotifier()
    return _sd_notifier


def notify_ready(status: str) -> None:
    notifier = get_systemd_notifier()
    notifier.notify("READY=1")
    notifier.notify(f"STATUS={status}")


def notify_status(status: str) -> None:
    get_systemd_notifier().notify(f"STATUS={status}")


def setup_signal_handlers(on_shutdown: Callable[[], None], service_logger: Optional[logging.Logger] = None) -> None:
    """
    Invoke on_shutdown on SIGTERM (systemctl stop) or SIGINT (Ctrl+C).

    on_shutdown runs in signal context and should only schedule the actual
    teardown (e.g. hand it to the main loop).
    """
    log = service_logger or logger

    def shutdown_handler(signum, frame):
        sig_name = 'SIGTERM' if signum == signal.SIGTERM else 'SIGINT'
        log.info(f"Received {sig_name}, initiating graceful shutdown")
        on_shutdown()

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)


def setup_glib_watchdog(interval_seconds: int = WATCHDOG_INTERVAL) -> None:
    """Ping the systemd watchdog from the GLib main loop every interval_seconds."""
    # Lazy import keeps this module usable without PyGObject
    from gi.repository import GLib

    notifier = get_systemd_notifier()

    def ping_watchdog() -> bool:
        notifier.notify("WATCHDOG=1")
        return True  # Keep the timeout active

    GLib.timeout_add_seconds(interval_seconds, ping_watchdog)
    logger.debug(f"Configured GLib watchdog ping every {interval_seconds}s")
