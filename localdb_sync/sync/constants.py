"""
Shared constants for the sync engine.

CURRENT_SCHEMA_VERSION is rewritten in place by the bump-schema-version
workflow; keep it as a single plain integer assignment.
"""

CURRENT_SCHEMA_VERSION = 1

DEFAULT_SEED_GENERATION = 1

CLI_BINARY_NAME = "rain-orderbook-cli"
CLI_ARCHIVE_NAME = "rain-orderbook-cli.tar.gz"
MANIFEST_FILE_NAME = "manifest.yaml"

RELEASE_DOWNLOAD_URL_TEMPLATE = (
    "https://github.com/findolor/local_db_remote/releases/latest/download/{file}"
)

# Environment inputs
CLI_BINARY_URL_ENV_VAR = "CLI_BINARY_URL"
SETTINGS_YAML_ENV_VAR = "SETTINGS_YAML_URL"
SYNC_CHAIN_IDS_ENV_VAR = "SYNC_CHAIN_IDS"
API_TOKEN_ENV_VARS = (
    "RAIN_API_TOKEN",
    "RAIN_ORDERBOOK_API_TOKEN",
    "HYPERRPC_API_TOKEN",
)

SYNC_STATUS_TABLE = "sync_status"
