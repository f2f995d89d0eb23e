"""Database engine, column types and migrations."""
