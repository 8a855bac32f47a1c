"""
Exercise payload decoding.

Payloads are opaque strings inside ExercisePayload. Models do not always
follow the requested format, so decoding falls back to plain text.
"""

import json
import re

# Blank lines, dash rules, "1)" markers and "1. " markers
_STATEMENT_SPLIT = re.compile(r"\n{2,}|\n-+\n|\n\d+\)|\d+\.\s")


def encode_proposition_payload(statements: list[str]) -> str:
    """Statements as a JSON array, in order."""
    return json.dumps(list(statements), ensure_ascii=False)


def decode_proposition_payload(payload: str) -> list[str]:
    """
    Statements of a proposition exercise.

    Accepts a JSON array, or an object with a "statements" array.
    Otherwise the text is split into chunks and the first three are
    kept when at least three exist; failing that the payload is one
    statement.
    """
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError:
        parsed = None

    if isinstance(parsed, list):
        return [str(item) for item in parsed]
    if isinstance(parsed, dict) and isinstance(parsed.get("statements"), list):
        return [str(item) for item in parsed["statements"]]

    chunks = [
        chunk.strip()
        for chunk in _STATEMENT_SPLIT.split(payload.replace("\r", ""))
        if chunk.strip()
    ]
    if len(chunks) >= 3:
        return chunks[:3]
    return [payload]


def decode_analytical_payload(payload: str) -> str:
    """Statement of an analytical exercise."""
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError:
        return payload

    if isinstance(parsed, str):
        return parsed
    if isinstance(parsed, dict) and isinstance(parsed.get("exercise"), str):
        return parsed["exercise"]
    return payload
