"""Type aliases for dynamic data structures throughout the library.

This module centralizes type definitions for data that cannot be statically
typed, providing clear semantic meaning for these types.
"""

from collections.abc import Mapping
from typing import Any

# Context dictionary for error details and debugging information
type ErrorContext = dict[str, Any]

# Flat key=value parameters extracted from a DSN string
type DSNParams = dict[str, str]

# Column name to new value, applied by partial updates
type UpdateValues = Mapping[str, Any]
