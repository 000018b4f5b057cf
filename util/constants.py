VERSION = "1.0.0"

DEFAULT_API_URL = "https://chatbridge.net"

DEFAULT_SYS_NAME = "AI Agent"
DEFAULT_REMINDER_INTERVAL = "15m"
DEFAULT_TIMEOUT = "1h"

CONFIG_DIR_NAME = ".afk"
CONFIG_FILE_NAME = "config.json"
ENV_CONFIG_DIR = "AFK_CONFIG_DIR"

API_KEY_PREFIXES = ("cb_live_", "cb_test_")

# Exit codes
EXIT_SUCCESS = 0
EXIT_BAD_ARGS = 1
EXIT_API_ERROR = 2
EXIT_TIMEOUT = 3
EXIT_SEND_FAILED = 4
