"""Constants shared across config_cache (key prefix, defaults, event names)."""

# Namespace prepended to every hash key
HASH_KEY_PREFIX = "redis-config-manager:"

DEFAULT_LABEL = "NO-LABEL ConfigCache Instance"
DEFAULT_SCAN_COUNT = 1000
DEFAULT_REFRESH_INTERVAL_MS = 15_000

# HSCAN returns this cursor once the iteration has wrapped around
SCAN_CURSOR_DONE = "0"

# Field stamped onto every record written by ConfigCache (epoch milliseconds)
LAST_UPDATED_FIELD = "lastUpdated"

EVENT_DEBUG = "debug"
EVENT_READY = "ready"
EVENT_ERROR = "error"
EVENT_NAMES = (EVENT_DEBUG, EVENT_READY, EVENT_ERROR)
