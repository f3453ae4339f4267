"""SQLite transaction queue backend: bridge adapters, scheduling core and bridge service."""
