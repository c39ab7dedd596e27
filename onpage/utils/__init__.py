"""
Utils Package - Utility functions and helpers

This package contains the similarity kernel and small helpers for
validation and formatting.
"""

from .helpers import (
    validate_url,
    format_file_size,
    format_duration,
    truncate_string,
)
from .similarity import (
    string_similarity,
    text_similarity,
    normalize_text,
    normalize_key,
)

__all__ = [
    'validate_url',
    'format_file_size',
    'format_duration',
    'truncate_string',
    'string_similarity',
    'text_similarity',
    'normalize_text',
    'normalize_key',
]
