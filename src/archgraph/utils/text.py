from __future__ import annotations

import re
import hashlib
from typing import List

_TOKEN_RE = re.compile(r"[a-z0-9_]+")


def normalize_text(text: str) -> str:
    """
    Case-folds and collapses whitespace.

    Used for cache keys and embedding input.
    """
    text = text.casefold()
    text = re.sub(r"\s+", " ", text)
    return text.strip()


def hash_text(text: str) -> str:
    """
    Stable hash of normalized text.
    """
    normalized = normalize_text(text)
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


def tokenize(text: str) -> List[str]:
    return _TOKEN_RE.findall(normalize_text(text))
