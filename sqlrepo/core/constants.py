"""Core application constants."""

# Time constants
MILLISECONDS_PER_SECOND = 1000

# Security and redaction
REDACTED = "[REDACTED]"

# DSN keys whose values must never reach a log line
SENSITIVE_DSN_KEYS = frozenset({"password", "passwd", "pwd"})
