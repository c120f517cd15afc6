import re

# Characters illegal in a path segment on any common platform
ILLEGAL_PATH_CHARS = frozenset('<>:"/\\|?*' + ''.join(chr(c) for c in range(32)))

DEFAULT_MAX_LENGTH = 120

_WHITESPACE = re.compile(r"\s+")


def sanitize_path_segment(value: str, max_length: int = DEFAULT_MAX_LENGTH) -> str:
    """
    Turns arbitrary text into a filesystem-safe path segment.

    Illegal characters become '_', whitespace runs collapse to a single '_',
    and the result is truncated to `max_length`. Idempotent.
    """
    if value is None or not str(value).strip():
        return "Unknown"

    s = str(value).strip()
    s = "".join("_" if ch in ILLEGAL_PATH_CHARS else ch for ch in s)
    s = _WHITESPACE.sub(" ", s).replace(" ", "_")
    return s[:max_length]


def safe_tail(uid: str, length: int = 6) -> str:
    """
    Uppercase tail of a UID for folder suffixes.
    Non-alphanumeric characters become 'X'.
    """
    if not uid or not uid.strip():
        return "X" * length
    tail = uid[-length:]
    return "".join(ch.upper() if ch.isalnum() else "X" for ch in tail)
