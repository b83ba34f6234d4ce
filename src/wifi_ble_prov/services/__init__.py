# wifi-ble-prov Services
#
# The BLE provisioning peripheral, built bottom-up:
#   - gatt.py: GATT object model and advertisement (no I/O)
#   - characteristics.py: per-characteristic read/write/notify behaviors
#   - command_protocol.py: encrypted connect/disconnect commands
#   - dispatcher.py: routes BlueZ's method calls to the object model
#   - installer.py: registers application and advertisement with BlueZ
#   - ble_provisioning.py: systemd service entry point
