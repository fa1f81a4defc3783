"""
Recovery parsing for caption replies.

The text provider is asked for ``{"captions": [...]}`` in JSON mode but may
still wrap the object in code fences or prose. ``parse_captions`` tries the
raw reply first and then a cleaned brace span; it never raises.
"""
import json
import re
from typing import Any, List, Optional

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)
_BRACE_SPAN_RE = re.compile(r"\{[\s\S]*\}")


def extract_json_block(raw: str) -> Optional[str]:
    """Strip ``` fences, then return the first-{ to last-} span if any."""
    without_fences = _FENCE_RE.sub("", raw or "").strip()
    match = _BRACE_SPAN_RE.search(without_fences)
    return match.group(0) if match else None


def _captions_from(data: Any) -> Optional[List[str]]:
    if not isinstance(data, dict):
        return None
    captions = data.get("captions")
    if not isinstance(captions, list):
        return None
    if not all(isinstance(c, str) for c in captions):
        return None
    return list(captions)


def _loads(text: str) -> Optional[List[str]]:
    try:
        return _captions_from(json.loads(text))
    except (TypeError, ValueError):
        return None


def parse_captions(raw: Optional[str]) -> Optional[List[str]]:
    """Return the caption list from a provider reply, or None if unrecoverable.

    An empty ``captions`` list is a valid result.
    """
    if raw is None:
        return None
    captions = _loads(raw)
    if captions is not None:
        return captions
    cleaned = extract_json_block(raw)
    if cleaned is None:
        return None
    return _loads(cleaned)


__all__ = ["extract_json_block", "parse_captions"]
