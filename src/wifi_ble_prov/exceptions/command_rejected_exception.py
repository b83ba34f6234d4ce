from wifi_ble_prov.exceptions import wifi_prov_exception


class CommandRejectedException(wifi_prov_exception.WifiProvException):
    """Raised when a command written over BLE fails validation."""
