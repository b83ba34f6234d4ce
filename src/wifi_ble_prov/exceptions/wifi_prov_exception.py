class WifiProvException(Exception):
    """Base error for wifi-ble-prov."""
