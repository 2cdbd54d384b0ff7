"""Version constants for the entry hash payload and the persisted format."""

TOOL_ID = "time-shards"
TOOL_VERSION = 2  # shape of the entry hash payload
ENTRY_VERSION = 1  # shape of a single seal request
FORMAT_VERSION = 2  # persisted snapshot / export schema

GENESIS_HASH = "0" * 64

