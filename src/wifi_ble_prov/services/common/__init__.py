# wifi-ble-prov Services - Common Utilities
#
# Shared building blocks: bus transport, crypto, NetworkManager client,
# configuration, logging and systemd helpers.
# Import directly from the specific module, not from this __init__.py.
#
# Example:
#   from wifi_ble_prov.services.common.network import NetworkManagerClient
#   from wifi_ble_prov.services.common.crypto import decrypt
