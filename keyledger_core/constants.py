# keyledger_core/constants.py

SERVICE_NAME = "KeyLedger API"

# activity log retention
MAX_LOG_ENTRIES = 100

# persisted layout
KEYS_FILENAME = "keys.json"
LOGS_FILENAME = "logs.json"
KEYS_TABLE = "api_keys"
LOGS_TABLE = "activity_logs"

DEFAULT_PROVIDER = "json"
DEFAULT_DATA_DIR = "data"
DEFAULT_DB_PATH = "db/keyledger.db"
DEFAULT_REST_TIMEOUT = 10.0
