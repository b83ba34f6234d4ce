from wifi_ble_prov.exceptions import wifi_prov_exception


class CryptoException(wifi_prov_exception.WifiProvException):
    """Raised when a payload cannot be decrypted with the local key."""
