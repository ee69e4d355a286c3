"""
Search filter translation.

Turns the compact ``field:value1,value2`` filter syntax accepted by the
``--filter`` options into the required-match query string understood by the
platform's search backend.
"""


def convert_to_search_field_format(filter: str) -> str:
    """
    Expand multi-value field clauses into one required-match clause per value.

    ``"id:a,b,c status:available,unavailable"`` becomes
    ``"+id:a +id:b +id:c +status:available +status:unavailable"``.
    Both ``field:value`` and ``field=value`` are accepted. Tokens that are not
    ``field:values`` pairs (no colon, or more than one) are dropped. When no
    token is a field clause the normalized input is returned as-is, so plain
    keyword searches such as ``"*"`` pass through untouched. Fields that
    already carry the ``+`` marker are not marked twice, so translating an
    already translated query returns it unchanged.

    Args:
        filter: Raw value of a ``--filter`` option

    Returns:
        Query string for the search backend
    """
    normalized = filter.strip(" ").replace("=", ":")

    conditions = []
    for part in normalized.split(" "):
        condition = part.split(":")
        if len(condition) != 2:
            continue
        field, values = condition
        field = field.lstrip("+")
        for variant in values.split(","):
            conditions.append(f"+{field}:{variant}")

    if conditions:
        return " ".join(conditions)

    return normalized


translate = convert_to_search_field_format
