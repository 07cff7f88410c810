import re

_SLUG_SEPARATORS = re.compile(r'[^a-z0-9]+')

def clean_text(s: str) -> str:
    if not s:
        return ""
    s = s.replace('\u200b',' ').replace('\xa0',' ')
    s = re.sub(r'\s+', ' ', s).strip()
    return s

def slugify(name: str) -> str:
    """URL-safe listing id, e.g. "Modern 2 Bed Flat!" -> "modern-2-bed-flat"."""
    return _SLUG_SEPARATORS.sub('-', name.lower()).strip('-')
