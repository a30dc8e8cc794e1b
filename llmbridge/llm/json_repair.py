"""
Lenient JSON extraction from model output.

Models like to wrap JSON in markdown fences and leave trailing commas
behind. ``parse_json`` undoes the common damage and gives up quietly
when the text still is not JSON.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.IGNORECASE | re.DOTALL)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def parse_json(text: Optional[str]) -> Optional[Union[dict[str, Any], list[Any]]]:
    """
    Parse a JSON object or array out of possibly messy model output.

    Steps: drop non-breaking spaces, unwrap the first fenced code block,
    remove trailing commas before ``}`` or ``]``, trim, decode.

    Returns:
        The decoded dict or list, or None when nothing parses (scalars
        count as nothing). Never raises.
    """
    if not text or not isinstance(text, str):
        return None

    cleaned = text.replace("\u00a0", " ")

    fence = _FENCE_RE.search(cleaned)
    if fence:
        cleaned = fence.group(1)

    cleaned = _TRAILING_COMMA_RE.sub(r"\1", cleaned).strip()

    try:
        value = json.loads(cleaned)
    except (ValueError, RecursionError):
        logger.debug("json_repair_failed", extra={"length": len(text)})
        return None

    if isinstance(value, (dict, list)):
        return value
    return None
