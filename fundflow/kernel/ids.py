from __future__ import annotations

import re
from uuid import uuid4


_PREFIX_RE = re.compile(r"^[a-z][a-z0-9]{1,24}$")


def new_prefixed_id(prefix: str) -> str:
    """Generate an id of the form `{prefix}_{uuidhex}` (e.g. `ord_...`)."""
    if not _PREFIX_RE.fullmatch(prefix):
        raise ValueError(
            "Invalid id prefix. Expected lowercase letters/digits, 2-25 chars, "
            "starting with a letter."
        )
    return f"{prefix}_{uuid4().hex}"
