"""
Utility functions for archgraph.

Low-level helpers shared across subsystems. No graph logic lives here.
"""

from archgraph.utils.text import normalize_text, hash_text, tokenize
from archgraph.utils.time import utc_now, iso_timestamp, age_seconds
from archgraph.utils.helpers import safe_mean, clamp, is_unit_score

__all__ = [
    "normalize_text",
    "hash_text",
    "tokenize",
    "utc_now",
    "iso_timestamp",
    "age_seconds",
    "safe_mean",
    "clamp",
    "is_unit_score",
]
