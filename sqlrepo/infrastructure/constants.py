"""Infrastructure-related constants, particularly for the database."""

# DSN defaults applied when the keys are absent
DEFAULT_SSLMODE = "disable"
DEFAULT_TIMEZONE = "UTC"

# Shared-cache in-memory SQLite database, visible to every pooled connection
SQLITE_MEMORY_DSN = "file::memory:?cache=shared"

# psycopg prepares every statement on first execution when this is 0
PREPARE_THRESHOLD_ALWAYS = 0

# Statements longer than this are truncated in log lines
MAX_LOGGED_STATEMENT_LENGTH = 500

# Naming convention for constraints to ensure consistency
# and avoid conflicts during migrations
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}
