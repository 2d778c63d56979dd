# rostersync/utils/misc_utils.py
from typing import Any, Iterable, List

from pydantic import AnyUrl, TypeAdapter, ValidationError

_URL_ADAPTER = TypeAdapter(AnyUrl)


def is_valid_url(value: Any) -> bool:
    """True when value is a string that parses as an absolute URL."""
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        _URL_ADAPTER.validate_python(value.strip())
    except ValidationError:
        return False
    return True


def unique_strings(values: Iterable[str]) -> List[str]:
    """Drops repeats while keeping first-seen order."""
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result
