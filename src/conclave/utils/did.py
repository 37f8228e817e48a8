"""Validation for decentralized identifiers."""

from __future__ import annotations

import re

# did:<method>:<method-specific-id>, with ':'-separated segments allowed in the id.
DID_PATTERN = re.compile(r"^did:[a-z0-9]+:[A-Za-z0-9._%-]+(?::[A-Za-z0-9._%-]+)*$")
DID_MAX_LENGTH = 256


def is_valid_did(value: object) -> bool:
    """Return True if ``value`` is a syntactically valid DID string."""
    if not isinstance(value, str) or len(value) > DID_MAX_LENGTH:
        return False
    return DID_PATTERN.match(value) is not None
