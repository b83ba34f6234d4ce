from wifi_ble_prov.exceptions import wifi_prov_exception


class GattModelException(wifi_prov_exception.WifiProvException):
    """Raised when a characteristic's flags and behavior disagree."""
