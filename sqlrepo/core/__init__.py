"""Shared building blocks used across sqlrepo.

- **config**: Settings loaded from the environment with pydantic-settings
- **exceptions**: Structured exception hierarchy with error codes
- **error_context**: Redaction of DSNs and SQL parameters for safe logging
- **logging**: Loguru sinks and standard library interception
- **types**: Type aliases for better code clarity
"""
