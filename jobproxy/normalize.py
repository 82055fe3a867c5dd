from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from bs4 import BeautifulSoup

CREATED_FIELD = "Created"
TEXT_FIELDS = ("job_title", "client", "skills")
LOCATION_FIELDS = ("city", "country", "zip_code")

# Formats seen in CEIPAL exports besides ISO 8601
CREATED_FORMATS = (
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y",
    "%Y-%m-%d %H:%M:%S",
)


def field_text(record: Dict[str, Any], field: str) -> str:
    """Lowercased string form of a record field; empty when missing."""
    value = record.get(field)
    if value is None:
        return ""
    return str(value).lower()


def parse_created(value: Any) -> Optional[datetime]:
    """Parse a creation timestamp into a naive UTC datetime, or None."""
    if not value or not isinstance(value, str):
        return None
    raw = value.strip()
    parsed = None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        for fmt in CREATED_FORMATS:
            try:
                parsed = datetime.strptime(raw, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def sort_by_created(records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Newest first. Equal timestamps keep their input order; records without
    a parseable timestamp keep their input order and go last.
    """
    dated = []
    undated = []
    for record in records:
        created = parse_created(record.get(CREATED_FIELD))
        if created is None:
            undated.append(record)
        else:
            dated.append((created, record))
    dated.sort(key=lambda pair: pair[0], reverse=True)
    return [record for _, record in dated] + undated


def any_field_contains(record: Dict[str, Any], fields: Sequence[str], term: str) -> bool:
    needle = term.lower()
    return any(needle in field_text(record, f) for f in fields)


def matches_query(record: Dict[str, Any], query: str) -> bool:
    return any_field_contains(record, TEXT_FIELDS, query)


def matches_location(record: Dict[str, Any], location: str) -> bool:
    return any_field_contains(record, LOCATION_FIELDS, location)


def filter_records(
    records: Iterable[Dict[str, Any]],
    query: Optional[str] = None,
    location: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """Records passing every supplied filter, in input order."""
    result = []
    for record in records:
        if query and not matches_query(record, query):
            continue
        if location and not matches_location(record, location):
            continue
        result.append(record)
    return result


def description_text(html: Optional[str]) -> str:
    """Plain text of an HTML job description, whitespace collapsed."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    return " ".join(soup.get_text(" ").split())
