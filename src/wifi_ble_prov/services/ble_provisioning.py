#!/usr/bin/env python3
"""
wifi-ble-prov - BLE Provisioning Service

Lets a phone app hand WiFi credentials to a headless device over Bluetooth LE.

=== What the phone sees ===

<local name> (Advertisement, service UUID c607d27b-8541-4947-0000-47258ea5e9d7)
└── Provisioning Service
    ├── connected  [READ, NOTIFY]  0x01 when WiFi is up, 0x00 otherwise
    ├── mac        [READ]          WiFi hardware address
    ├── ap         [READ]          {"ssid":..,"frequency":..,"strength":..} or empty
    └── command    [WRITE]         encrypted connect / disconnect commands

Commands are AES-256-CBC encrypted with the local key, which the phone app
must know in advance (see --local-key).

=== Startup ===

1. Parse the command line and configure logging
2. Connect to the system D-Bus (GLib main loop)
3. Make sure NetworkManager networking and the WiFi radio are on
4. Install the peripheral (power adapter, register application, advertise)
5. Tell systemd we're ready and start pinging the watchdog
6. Run the GLib main loop until SIGTERM/SIGINT

Steps 3-4 run off the main loop: BlueZ queries our object tree while
RegisterApplication is still pending, and only the main loop can answer it.

=== Dependencies ===

- dbus-python + PyGObject: system bus and event loop
- cryptography: AES-256-CBC
- sdnotify: systemd readiness and watchdog
- BlueZ and NetworkManager running on the host
"""

import logging
import sys

from gi.repository import GLib

from wifi_ble_prov.services.common.bus import SystemBusTransport
from wifi_ble_prov.services.common.config import parse_args
from wifi_ble_prov.services.common.logging_config import (
    log_service_ready,
    log_service_start,
    setup_service_logging,
)
from wifi_ble_prov.services.common.network import NetworkManagerClient
from wifi_ble_prov.services.common.system import (
    notify_ready,
    notify_status,
    setup_glib_watchdog,
    setup_signal_handlers,
)
from wifi_ble_prov.services.installer import ProvisioningInstaller

SERVICE_NAME = 'WiFi BLE Provisioning Service'

logger = logging.getLogger('wifi-ble-prov')


def main():
    config = parse_args()
    setup_service_logging('wifi-ble-prov', config.logging_level)
    log_service_start(logger, SERVICE_NAME)

    if config.key_generated:
        logger.warning(f"No local key configured, using a random key for this run: {config.local_key.hex()}")

    try:
        transport = SystemBusTransport.connect()
    except Exception as e:
        logger.error(f"Failed to connect to system D-Bus: {e}")
        sys.exit(1)

    network = NetworkManagerClient(transport)
    installer = ProvisioningInstaller(transport, network, config.local_key)
    mainloop = GLib.MainLoop()

    exit_code = 0
    shutting_down = False

    def start():
        network.ensure_radio_enabled()
        return installer.install(config.root_path, config.local_name)

    def on_installed(installation):
        setup_glib_watchdog()
        notify_ready(f"Advertising as {config.local_name}")
        log_service_ready(logger, SERVICE_NAME, f"advertising as {config.local_name} at {installation.root_path}")

    def on_install_failed(e: Exception):
        nonlocal exit_code
        logger.error(f"Failed to install provisioning peripheral: {e}")
        notify_status(f"Installation failed: {e}")
        exit_code = 1
        mainloop.quit()

    def on_uninstall_failed(e: Exception):
        logger.error(f"Failed to uninstall provisioning peripheral: {e}")
        mainloop.quit()

    def shutdown():
        nonlocal shutting_down
        if shutting_down:
            return
        shutting_down = True
        transport.spawn(installer.uninstall, lambda _: mainloop.quit(), on_uninstall_failed)

    setup_signal_handlers(shutdown, logger)
    transport.spawn(start, on_installed, on_install_failed)

    try:
        mainloop.run()
    except Exception as e:
        logger.exception(f"Main loop error: {e}")
        exit_code = 1
    finally:
        logger.info(f"{SERVICE_NAME} stopped")

    sys.exit(exit_code)


if __name__ == '__main__':
    main()
