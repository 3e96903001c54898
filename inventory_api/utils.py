import re
from typing import Optional
import bleach
from slugify import slugify

from .errors import bad_request


def sanitize_input(value: Optional[str]) -> str:
    """Sanitize a user-supplied string for safe display and search.

    - Strips HTML tags using bleach.clean(..., strip=True)
    - Removes obvious SQL metacharacters like '--' and ';'
    - Trims whitespace
    """
    if value is None:
        return ""
    # remove NULL bytes
    val = value.replace("\x00", "")
    # strip tags
    val = bleach.clean(val, strip=True)
    # remove common SQL comment and statement separators
    val = re.sub(r"(--|;)", "", val)
    return val.strip()


def make_slug(text: str, field: str = "name") -> str:
    """Lowercase, dash separated, transliterated projection of a display name.

    'Mild Steel' -> 'mild-steel', 'Café' -> 'cafe'. A name with nothing to transliterate
    (only punctuation, say) has no usable slug and is rejected.
    """
    slug = slugify(text or "")
    if not slug:
        raise bad_request(f"Cannot derive a slug from '{text}'", details={"field": field})
    return slug


def search_pattern(term: Optional[str]) -> Optional[str]:
    """LIKE pattern for a case-insensitive substring search, or None for no filter."""
    cleaned = sanitize_input(term)
    if not cleaned:
        return None
    escaped = cleaned.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
