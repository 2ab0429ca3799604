"""Header helpers shared by the HTTP adapter and the client."""

from collections.abc import Mapping

IDEMPOTENCY_HEADER = "Idempotency-Key"


def get_header_value(
    headers: Mapping[str, str],
    header_name: str,
    default: str | None = None,
) -> str | None:
    """Get header value with case-insensitive lookup.

    Args:
        headers: Headers mapping
        header_name: Name of header to find (case-insensitive)
        default: Default value if header not found

    Returns:
        Header value or default

    Example:
        >>> get_header_value({"idempotency-key": "abc"}, "Idempotency-Key")
        'abc'
        >>> get_header_value({}, "Idempotency-Key", "missing")
        'missing'
    """
    header_name_lower = header_name.lower()

    for key, value in headers.items():
        if key.lower() == header_name_lower:
            return value

    return default


def get_idempotency_key(headers: Mapping[str, str]) -> str | None:
    """Return the stripped idempotency key, or None if absent or blank."""
    value = get_header_value(headers, IDEMPOTENCY_HEADER)
    if value is None or not value.strip():
        return None
    return value.strip()
