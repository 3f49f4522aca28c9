"""
Prompt construction and normalization of model output into obligation records.

The model is asked for a JSON array but does not always comply, so parsing
falls back in order:

1. strip Markdown code fences and parse the whole text,
2. parse the first bracketed array found inside the text,
3. give up and return one placeholder obligation carrying the raw text.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

from obligation_registry.core.errors import ResponseParseError

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "Could not extract structured obligations"

_FENCE_RE = re.compile(r"^\s*```[a-zA-Z]*\s*\n?(.*?)\n?\s*```\s*$", re.DOTALL)
_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)

_TEXT_KEYS = ("obligation", "text", "description")
_SECTION_KEYS = ("section", "clause")
_DUE_DATE_KEYS = ("dueDate", "due_date", "deadline")

# the C decoder raises RecursionError on deeply nested input
_DECODE_ERRORS = (ValueError, RecursionError)


def build_extraction_prompt(party: str) -> str:
    return (
        f"You are a contract manager for {party}. "
        f"Extract the key obligations that {party} has under the attached contract. "
        "For each obligation give the obligation text and the contract section it comes from. "
        "If an obligation is time-based, extract its due date as YYYY-MM-DD. "
        "Output ONLY a JSON array where each element has the fields "
        "'obligation', 'section' and 'dueDate' (null when there is no due date). "
        "Do not add any commentary."
    )


def strip_code_fences(text: str) -> str:
    match = _FENCE_RE.match(text)
    return match.group(1).strip() if match else text.strip()


def _first_value(item: Dict[str, Any], keys) -> Any:
    for key in keys:
        value = item.get(key)
        if value not in (None, ""):
            return value
    return None


def normalize_obligation(item: Any) -> Optional[Dict[str, Any]]:
    """Coerce one parsed element into the canonical obligation dict, or None."""
    if isinstance(item, str):
        item = {"obligation": item}
    if not isinstance(item, dict):
        return None

    text = _first_value(item, _TEXT_KEYS)
    if text is None or not str(text).strip():
        return None

    section = _first_value(item, _SECTION_KEYS)
    due_date = _first_value(item, _DUE_DATE_KEYS)
    return {
        "obligation": str(text).strip(),
        "section": str(section).strip() if section is not None else None,
        "dueDate": str(due_date).strip() if due_date is not None else None,
    }


def _load_array(candidate: str) -> List[Dict[str, Any]]:
    data = json.loads(candidate)
    # tolerate {"obligations": [...]} wrappers
    if isinstance(data, dict):
        data = next((v for v in data.values() if isinstance(v, list)), None)
    if not isinstance(data, list):
        raise ValueError("not a JSON array")

    obligations = [ob for ob in (normalize_obligation(item) for item in data) if ob]
    if data and not obligations:
        raise ValueError("array has no usable obligations")
    dropped = len(data) - len(obligations)
    if dropped:
        logger.warning(f"Dropped {dropped} malformed obligation entries")
    return obligations


def _first_bracketed_array(text: str) -> List[Dict[str, Any]]:
    match = _ARRAY_RE.search(text)
    if match:
        try:
            return _load_array(match.group(0))
        except _DECODE_ERRORS:
            pass
    # greedy match spans too much when prose follows the array
    start = text.find("[")
    if start == -1:
        raise ValueError("no array in text")
    data, _ = json.JSONDecoder().raw_decode(text[start:])
    return _load_array(json.dumps(data))


def parse_obligations(text: str) -> List[Dict[str, Any]]:
    """Parse model output into obligations; raises ResponseParseError."""
    if not text or not text.strip():
        raise ResponseParseError("empty response")

    cleaned = strip_code_fences(text)
    try:
        return _load_array(cleaned)
    except _DECODE_ERRORS:
        pass

    try:
        return _first_bracketed_array(cleaned)
    except _DECODE_ERRORS as e:
        raise ResponseParseError(f"no structured obligations in response: {e}") from e


def placeholder_obligation(raw_text: str) -> Dict[str, Any]:
    return {
        "obligation": PLACEHOLDER_TEXT,
        "section": "N/A",
        "dueDate": None,
        "raw_response": raw_text,
    }


def normalize_response(text: str) -> Tuple[List[Dict[str, Any]], bool]:
    """Return ``(obligations, parsed)``; never raises.

    ``parsed`` is False when the placeholder fallback was used.
    """
    try:
        return parse_obligations(text), True
    except ResponseParseError as e:
        logger.warning(f"Falling back to placeholder obligation: {e}")
        return [placeholder_obligation(text)], False
