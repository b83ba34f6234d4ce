# ============================================================================
# D-Bus / BlueZ names
# ============================================================================

DBUS_PROP_IFACE = 'org.freedesktop.DBus.Properties'
DBUS_OM_IFACE = 'org.freedesktop.DBus.ObjectManager'

BLUEZ_SERVICE_NAME = 'org.bluez'
ADAPTER_IFACE = 'org.bluez.Adapter1'
GATT_MANAGER_IFACE = 'org.bluez.GattManager1'
LE_ADVERTISING_MANAGER_IFACE = 'org.bluez.LEAdvertisingManager1'
GATT_SERVICE_IFACE = 'org.bluez.GattService1'
GATT_CHRC_IFACE = 'org.bluez.GattCharacteristic1'
LE_ADVERTISEMENT_IFACE = 'org.bluez.LEAdvertisement1'

BLUEZ_ERROR_FAILED = 'org.bluez.Error.Failed'

# ============================================================================
# NetworkManager names
# ============================================================================

NM_SERVICE = 'org.freedesktop.NetworkManager'
NM_PATH = '/org/freedesktop/NetworkManager'
NM_INTERFACE = 'org.freedesktop.NetworkManager'
NM_SETTINGS_PATH = '/org/freedesktop/NetworkManager/Settings'
NM_SETTINGS_IFACE = 'org.freedesktop.NetworkManager.Settings'
NM_SETTINGS_CONNECTION_IFACE = 'org.freedesktop.NetworkManager.Settings.Connection'
NM_CONNECTION_ACTIVE_IFACE = 'org.freedesktop.NetworkManager.Connection.Active'
NM_DEVICE_IFACE = 'org.freedesktop.NetworkManager.Device'
NM_DEVICE_WIRELESS_IFACE = 'org.freedesktop.NetworkManager.Device.Wireless'
NM_ACCESS_POINT_IFACE = 'org.freedesktop.NetworkManager.AccessPoint'

NM_ERROR_INVALID_CONNECTION = 'org.freedesktop.NetworkManager.Settings.InvalidConnection'

NM_DEVICE_TYPE_WIFI = 2
NM_DEVICE_STATE_ACTIVATED = 100

# Settings profile created for credentials received over BLE
PROV_CONNECTION_UUID = 'e806a36c-7249-45c1-8872-ad19095807bd'
PROV_CONNECTION_ID = 'pi-prov'

# ============================================================================
# Provisioning GATT layout
# ============================================================================

PROV_SERVICE_UUID = 'c607d27b-8541-4947-0000-47258ea5e9d7'
CONNECTED_CHRC_UUID = 'c607d27b-8541-4947-0001-47258ea5e9d7'
MAC_CHRC_UUID = 'c607d27b-8541-4947-0002-47258ea5e9d7'
AP_CHRC_UUID = 'c607d27b-8541-4947-0003-47258ea5e9d7'
COMMAND_CHRC_UUID = 'c607d27b-8541-4947-0004-47258ea5e9d7'

ADVERTISEMENT_SUFFIX = '/adv'
SERVICE_SUFFIX = '/prov'

DISCONNECT_CHALLENGE = 'disconnect'

# ============================================================================
# Startup defaults
# ============================================================================

DEFAULT_ROOT_PATH = '/com/wifi_ble_prov'
DEFAULT_LOCAL_NAME = 'wifi-prov'
DEFAULT_LOG_LEVEL = 'info'
LOCAL_KEY_ENV_VAR = 'WIFI_BLE_PROV_LOCAL_KEY'
