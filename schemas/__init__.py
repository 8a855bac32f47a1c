"""
Schema-driven handling of model output.

Single gate between raw model text and domain records.
"""

from .responses import (
    normalize_exercise_type,
    parse_exercise,
    parse_feedback,
    strip_code_fence,
)
from .payloads import (
    decode_analytical_payload,
    decode_proposition_payload,
    encode_proposition_payload,
)

__all__ = [
    "parse_feedback",
    "parse_exercise",
    "normalize_exercise_type",
    "strip_code_fence",
    "decode_proposition_payload",
    "decode_analytical_payload",
    "encode_proposition_payload",
]
