"""Security utilities for input validation and sanitization."""

from .validation import (
    SecurityError,
    sanitize_log_input,
    validate_url,
    validate_file_path,
    validate_cli_string_input,
)

__all__ = [
    "SecurityError",
    "sanitize_log_input",
    "validate_url",
    "validate_file_path",
    "validate_cli_string_input",
]
