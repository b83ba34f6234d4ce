from wifi_ble_prov.exceptions import wifi_prov_exception


class InstallationException(wifi_prov_exception.WifiProvException):
    """Raised when the peripheral cannot be installed."""


class AdapterNotFoundException(InstallationException):

    def __init__(self, message: str = None):
        self.message = "No Bluetooth adapter found."
        if message:
            self.message = f"{self.message} {message}"
        super().__init__(self.message)
