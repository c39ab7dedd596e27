"""
Helper Utilities - Thin wrappers around open-source libraries

Convenience wrappers for validation, formatting and small text operations
shared by the services and tools.
"""

import re
import validators
import humanize


# ============================================================================
# Validation Helpers (using 'validators' library)
# ============================================================================

def validate_url(url: str, require_https: bool = False) -> bool:
    """
    Validate if string is a valid http(s) URL.

    Args:
        url: URL to validate
        require_https: If True, only HTTPS URLs are valid

    Returns:
        bool: True if valid URL
    """
    if not isinstance(url, str) or not url:
        return False

    if not url.startswith(('http://', 'https://')):
        return False

    # validators rejects bare hosts like "localhost"; allow them with a port
    if not validators.url(url, simple_host=True):
        return False

    if require_https and not url.startswith('https://'):
        return False

    return True


# ============================================================================
# Formatting Helpers (using 'humanize' library)
# ============================================================================

def format_file_size(bytes_count: int) -> str:
    """Format bytes to human-readable size (e.g., '1.5 MB')."""
    return humanize.naturalsize(bytes_count)


def format_duration(seconds: float) -> str:
    """Format a duration in milliseconds with two decimals."""
    return f"{seconds * 1000:.2f}ms"


# ============================================================================
# Utility Functions
# ============================================================================

def truncate_string(text: str, max_length: int, suffix: str = "...") -> str:
    """
    Truncate string to maximum length.

    Args:
        text: String to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        Truncated string
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix


def strip_trailing_index(name: str) -> str:
    """'price_3' -> 'price'. Used to derive list names."""
    return re.sub(r'_\d+$', '', name)
