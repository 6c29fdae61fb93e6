import datetime
import re

# ============================================================
# Constants
# ============================================================
UUID_RE = re.compile(r"^[0-9a-f]{8}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{4}-?[0-9a-f]{12}$", re.IGNORECASE)

DATE_FORMATS = ("%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%dT%H:%M:%S.%fZ", "%Y-%m-%dT%H:%M:%SZ", "%B %d, %Y")

# ============================================================
# Helpers
# ============================================================
def parse_event_date(value):
    """Parse an event date into a `datetime.date`.

    Accepts date/datetime objects and the text formats we have seen in
    exports. Returns None for anything missing or unparsable.
    """
    if value is None:
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    text = str(value).strip()
    if not text:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def is_uuid(value) -> bool:
    return bool(value) and bool(UUID_RE.match(value.strip()))


def normalize_uuid(value: str) -> str:
    """Return the lowercase dashed form of a UUID (dashed or undashed input)."""
    raw = value.strip().replace("-", "").lower()
    return f"{raw[0:8]}-{raw[8:12]}-{raw[12:16]}-{raw[16:20]}-{raw[20:32]}"


def clean_list(values):
    """Strip entries and drop the blank ones, keeping order."""
    return [v.strip() for v in (values or []) if v and v.strip()]


def format_event_date(value):
    d_obj = parse_event_date(value)
    if d_obj is None:
        return value or "Unknown date"
    return d_obj.strftime("%B %d, %Y")


def search_events(events, term):
    """Case-insensitive match on title, description and the date text."""
    term = (term or "").strip().lower()
    if not term:
        return list(events)
    matches = []
    for event in events:
        haystack = " ".join([
            event.title or "",
            event.description or "",
            event.date or "",
            format_event_date(event.date),
        ]).lower()
        if term in haystack:
            matches.append(event)
    return matches
