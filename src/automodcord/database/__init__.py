"""SQLite persistence: connection management, schema and the database coordinator."""
