from pathlib import Path
from config.loader import get_config_loader

# Get the config loader instance
config = get_config_loader()

LOG_LEVEL = config.get("LOG_LEVEL", "info")

# Captive portal network configuration
# AP_ADDRESS is the address clients see for the device once they join the access point
AP_ADDRESS = config.get("AP_ADDRESS", "192.168.4.1")
AP_SSID_PREFIX = config.get("AP_SSID_PREFIX", "GitPortal")
PORTAL_BIND_ADDRESS = config.get("PORTAL_BIND_ADDRESS", "0.0.0.0")
PORTAL_PORT = config.get("PORTAL_PORT", 80)
DNS_PORT = config.get("DNS_PORT", 53)
DNS_TTL = config.get("DNS_TTL", 60)

# Radio backend: "nmcli" drives a NetworkManager hotspot, "loopback" runs without a radio
RADIO_BACKEND = config.get("RADIO_BACKEND", "nmcli")
WIFI_INTERFACE = config.get("WIFI_INTERFACE", "wlan0")

# Foreground polling while a portal is up
POLL_INTERVAL = config.get("POLL_INTERVAL", 0.1)
PORTAL_TIMEOUT = config.get("PORTAL_TIMEOUT", 600.0)
QR_LINK_TTL = config.get("QR_LINK_TTL", 300)

# Outbound REST calls (synchronous, no automatic retry)
REQUEST_TIMEOUT = config.get("REQUEST_TIMEOUT", 10.0)
CONNECT_TIMEOUT = config.get("CONNECT_TIMEOUT", 5.0)
USER_AGENT = "gitportal/1.0"

# Backend API bases (overridable per provider from the configuration store)
GITHUB_API_BASE = config.get("GITHUB_API_BASE", "https://api.github.com")
GITLAB_API_BASE = config.get("GITLAB_API_BASE", "https://gitlab.com/api/v4")
GITEE_API_BASE = config.get("GITEE_API_BASE", "https://gitee.com/api/v5")

# OAuth: the simulated backend is only reachable when explicitly enabled
SIMULATED_OAUTH = config.get("SIMULATED_OAUTH", False)
OAUTH_CALLBACK_PATH = "/callback"

# Persistent key/value configuration store
CONFIG_FILE = config.get("CONFIG_FILE", str(Path.home() / ".gitportal" / "config.json"))

# Debug log written when --debug is passed
DEBUG_LOG_FILE = config.get("DEBUG_LOG_FILE", "gitportal_debug.log")
