import json
import random
import re
import string
import time
from typing import Any, Optional


def now_ms() -> int:
    """Current UTC time as epoch milliseconds (the stored timestamp format)."""
    return int(time.time() * 1000)


def generate_id(prefix: str) -> str:
    """Return ``<prefix>_<epoch ms>_<5 random base36 chars>``."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=5))
    return f"{prefix}_{now_ms()}_{suffix}"


def random_digits(low: int, high: int) -> int:
    return random.randint(low, high)


def normalise_code(value: Optional[str]) -> str:
    """Enrolment codes and passcodes are compared upper-cased and trimmed."""
    return (value or "").strip().upper()


def extract_json(text: str) -> Any:
    """Parse JSON from model output that may be fenced or surrounded by prose.

    Raises ``json.JSONDecodeError`` when nothing parseable is found.
    """
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass
    fence_match = re.search(r"```(?:json)?\s*\n(.*?)\n```", text, re.DOTALL | re.IGNORECASE)
    if fence_match:
        try:
            return json.loads(fence_match.group(1).strip())
        except json.JSONDecodeError:
            pass
    cleaned = text.strip().lstrip("`").rstrip("`").strip()
    if cleaned.lower().startswith("json"):
        cleaned = cleaned[4:].strip()
    return json.loads(cleaned)
