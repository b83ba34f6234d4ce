from wifi_ble_prov.exceptions import wifi_prov_exception


class WifiDeviceNotFoundException(wifi_prov_exception.WifiProvException):

    def __init__(self, message: str = None):
        self.message = "NetworkManager has no WiFi device."
        if message:
            self.message = f"{self.message} {message}"
        super().__init__(self.message)
