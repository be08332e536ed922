from __future__ import annotations

import re

# "_" separates the parts, so it may not appear inside one
_INVALID_PART = re.compile(r"[\s_]")


def scope_key(prefix: str, environment: str, name: str, *parts: str) -> str:
    """Build a namespaced property key.

    ``scope_key("plaid", "sandbox", "sync_cursor", "item-1")`` gives
    ``PLAID_SANDBOX_SYNC_CURSOR_item-1``. Prefix, environment and name are
    upper-cased; parts are kept verbatim since they are remote ids.

    Raises:
        ValueError: If any part is empty or contains whitespace or ``_``.
    """
    for part in parts:
        if not part or _INVALID_PART.search(part):
            raise ValueError(f"invalid key part: {part!r}")
    head = "_".join(s.upper() for s in (prefix, environment, name))
    return "_".join((head, *parts))
