from __future__ import annotations

import json
import re
from typing import Any, Dict, Optional

_CODE_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_DECODER = json.JSONDecoder()


def extract_first_json_object(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Return the first JSON object embedded in free model text, or None.

    Providers do not guarantee clean JSON: replies may be wrapped in code
    fences or surrounded by prose. Fenced content is tried first, then every
    "{" in the text is tried in order until one decodes to a dict.
    """
    t = (text or "").strip()
    if not t:
        return None

    candidates = [m.group(1) for m in _CODE_FENCE_RE.finditer(t)]
    candidates.append(t)

    for candidate in candidates:
        found = _scan_for_object(candidate)
        if found is not None:
            return found
    return None


def _scan_for_object(text: str) -> Optional[Dict[str, Any]]:
    start = text.find("{")
    while start != -1:
        try:
            value, _end = _DECODER.raw_decode(text, start)
        except json.JSONDecodeError:
            value = None
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    return None
