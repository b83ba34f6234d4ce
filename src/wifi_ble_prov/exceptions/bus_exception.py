from typing import Optional

from wifi_ble_prov.exceptions import wifi_prov_exception


class BusException(wifi_prov_exception.WifiProvException):
    """Raised when a D-Bus call returns an error."""

    def __init__(self, name: Optional[str], message: str = None):
        self.name = name
        self.message = f"D-Bus call failed ({name})"
        if message:
            self.message = f"{self.message}: {message}"
        super().__init__(self.message)
