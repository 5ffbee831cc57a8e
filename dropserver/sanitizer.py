# dropserver/sanitizer.py
import re

# Anything that is not a word char, whitespace, hyphen or apostrophe
DISALLOWED = re.compile(r"[^\w\s\-']", re.ASCII)


def sanitize(text: str) -> str:
    """Remove disallowed characters from free-text fields (no placeholders)."""
    return DISALLOWED.sub("", text)
