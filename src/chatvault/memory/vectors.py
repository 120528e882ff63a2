"""
Vector helpers. Embeddings are stored as JSON float arrays; "[]" means no vector.
"""

from __future__ import annotations

import json
import math
from typing import List, Optional, Sequence

EMPTY_VECTOR = "[]"


def cosine(a: Sequence[float], b: Sequence[float]) -> float:
    """dot / sqrt(|a|^2 * |b|^2); 0.0 on empty, mismatched or zero-norm input."""
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = norm_a = norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / math.sqrt(norm_a * norm_b)


def parse_vector(raw: Optional[str]) -> List[float]:
    if not raw:
        return []
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        return []
    if not isinstance(data, list):
        return []
    try:
        return [float(x) for x in data]
    except (TypeError, ValueError):
        return []


def to_json(vector: Optional[Sequence[float]]) -> str:
    return json.dumps([float(x) for x in vector]) if vector else EMPTY_VECTOR


def cosine_json(a_json: Optional[str], b_json: Optional[str]) -> float:
    return cosine(parse_vector(a_json), parse_vector(b_json))
