"""
Helpers shared by the document schemas.
"""
from typing import Any

# Strings older documents use in place of a missing value
LEGACY_SENTINELS = {"", "NA", "N/A", "Unassigned", "Not Assigned", "Not Provided"}


def none_if_sentinel(value: Any) -> Any:
    """Read a legacy sentinel string back as an absent value."""
    if isinstance(value, str) and value.strip() in LEGACY_SENTINELS:
        return None
    return value
