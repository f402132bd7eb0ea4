"""Input validation and log sanitization.

Provider payloads, webhook bodies and CLI arguments all end up in log lines
and file paths; these helpers keep them from forging log records, escaping
the terminal or pointing outside the intended directory.
"""

import re
from enum import Enum
from pathlib import PurePath
from typing import Any, Iterable, Optional
from urllib.parse import urlparse

from pydantic import BaseModel

MAX_LOG_VALUE_LENGTH = 1000
MAX_PATH_LENGTH = 4096

_ANSI_ESCAPE = re.compile(r'\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])')
_CONTROL_CHARS = re.compile(r'[\x00-\x1F\x7F]')
_ENV_VAR_NAME = re.compile(r'^[A-Za-z_][A-Za-z0-9_]{0,254}$')
_SCRIPT_LIKE = re.compile(
    r'<script|javascript:|vbscript:|on(?:load|error)=|\b(?:eval|exec|system)\s*\(|`[^`]*`',
    re.IGNORECASE,
)

# Shell and loader variables a config file must never read
_RESERVED_ENV_VARS = frozenset({
    'PATH', 'HOME', 'USER', 'SHELL', 'TERM', 'PWD', 'OLDPWD',
    'IFS', 'PS1', 'PS2', 'HISTFILE', 'HISTSIZE', 'TMPDIR',
    'LD_PRELOAD', 'LD_LIBRARY_PATH', 'PYTHONPATH',
})


class SecurityError(Exception):
    """Raised when security validation fails."""


def sanitize_log_input(data: Any) -> Any:
    """Make a value safe to put in a log record.

    Strings get line breaks and tabs escaped, ANSI sequences removed and are
    truncated; containers and models are sanitized element by element.

    Args:
        data: Value about to be logged

    Returns:
        Sanitized copy of the value
    """
    if data is None or isinstance(data, (bool, int, float)):
        return data
    if isinstance(data, Enum):
        return sanitize_log_input(data.value)
    if isinstance(data, BaseModel):
        return sanitize_log_input(data.model_dump(mode="json"))
    if isinstance(data, dict):
        return {str(key): sanitize_log_input(value) for key, value in data.items()}
    if isinstance(data, (list, tuple, set, frozenset)):
        return [sanitize_log_input(item) for item in data]

    text = _ANSI_ESCAPE.sub('', str(data))
    text = text.replace('\r', '\\r').replace('\n', '\\n').replace('\t', '\\t')
    if len(text) > MAX_LOG_VALUE_LENGTH:
        text = text[:MAX_LOG_VALUE_LENGTH - 3] + "..."
    return text


def validate_url(url: str, allowed_schemes: Iterable[str] = ("https", "http")) -> bool:
    """Check that ``url`` is an absolute URL with an allowed scheme and a host."""
    if not isinstance(url, str) or any(char in url for char in '"\'<>` '):
        return False

    try:
        parsed = urlparse(url)
    except ValueError:
        return False

    schemes = {scheme.lower() for scheme in allowed_schemes}
    return parsed.scheme.lower() in schemes and bool(parsed.netloc)


def validate_file_path(file_path: str, allow_absolute: bool = True) -> bool:
    """Check a state or config file path given on the command line.

    Args:
        file_path: Path to check
        allow_absolute: Whether absolute paths are acceptable

    Returns:
        True if the path has no parent-directory segments, home or variable
        expansion, NUL bytes or shell metacharacters
    """
    if not isinstance(file_path, str):
        return False

    candidate = file_path.strip()
    if not candidate or len(candidate) > MAX_PATH_LENGTH or '\x00' in candidate:
        return False

    if candidate.startswith('~') or '${' in candidate:
        return False

    if any(char in candidate for char in '<>|*?"'):
        return False

    path = PurePath(candidate.replace('\\', '/'))
    if '..' in path.parts:
        return False

    if not allow_absolute and (path.is_absolute() or re.match(r'^[A-Za-z]:', candidate)):
        return False

    return True


def validate_cli_string_input(input_str: str, max_length: int = 1000, allow_empty: bool = False) -> bool:
    """Check an identifier or free-text CLI argument.

    Rejects control characters and script-like content, and enforces
    ``max_length``.
    """
    if not isinstance(input_str, str):
        return False
    if not input_str.strip():
        return allow_empty
    if len(input_str) > max_length:
        return False
    return not _CONTROL_CHARS.search(input_str) and not _SCRIPT_LIKE.search(input_str)


def validate_environment_variable_name(var_name: Optional[str]) -> bool:
    """Check that a ``${VAR}`` reference names an ordinary, non-reserved variable."""
    if not isinstance(var_name, str) or not _ENV_VAR_NAME.match(var_name):
        return False
    return var_name.upper() not in _RESERVED_ENV_VARS
