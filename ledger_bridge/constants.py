"""Centralized constants for LedgerBridge to eliminate duplicate strings."""

# Provider registry
BALANCE_CAPABILITY = "economy"
OWNER_NAME = "ledger-bridge"

# Registration priorities (lowest to highest)
PRIORITY_LOWEST = 0
PRIORITY_LOW = 1
PRIORITY_NORMAL = 2
PRIORITY_HIGH = 3
PRIORITY_HIGHEST = 4

# Backup artifact format
BACKUP_FORMAT_VERSION = "1"
BACKUP_FILE_PREFIX = "balance-backup-"
BACKUP_FILE_SUFFIX = ".yml"

# Result/summary fields
SOURCE_PROVIDER = "source_provider"
TOTAL_ACCOUNTS = "total_accounts"
TOTAL_MIGRATED_BALANCE = "total_migrated_balance"
ERROR_MESSAGE = "error_message"
