"""Bulk recipient parsing.

Turns free-form pasted text into an ordered, deduplicated list of
recipient addresses plus the tokens that were rejected.
"""

import re
from dataclasses import dataclass, field

# Any run of whitespace, commas or semicolons separates tokens
TOKEN_SEPARATORS = re.compile(r"[\s,;]+")

# Permissive shape check: local@domain.tld, no whitespace, single @
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass
class ParsedRecipients:
    """Result of parsing a recipient list.

    Attributes:
        valid: Unique valid addresses in first-seen order
        invalid: Rejected tokens in input order
        duplicates: Valid addresses dropped as repeats of an earlier one
    """

    valid: list[str] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)

    @property
    def token_count(self) -> int:
        return len(self.valid) + len(self.invalid) + len(self.duplicates)

    @property
    def is_empty(self) -> bool:
        """True when the input contained no tokens at all."""
        return self.token_count == 0

    @property
    def has_valid(self) -> bool:
        return bool(self.valid)


def is_valid_email(token: str) -> bool:
    """Check whether a token looks like an email address."""
    return bool(EMAIL_PATTERN.match(token))


def tokenize(text: str | None) -> list[str]:
    """Split raw input into non-empty tokens."""
    if not text:
        return []
    return [token for token in TOKEN_SEPARATORS.split(text) if token]


def parse_recipients(text: str | None) -> ParsedRecipients:
    """Parse pasted recipient text.

    Valid addresses are deduplicated case-insensitively; the first spelling
    wins. Every non-empty token lands in exactly one of valid, invalid or
    duplicates.

    Args:
        text: Free-form text with addresses separated by whitespace,
            commas, semicolons or newlines

    Returns:
        ParsedRecipients with the partitioned tokens
    """
    parsed = ParsedRecipients()
    seen: set[str] = set()

    for token in tokenize(text):
        if not is_valid_email(token):
            parsed.invalid.append(token)
            continue

        key = token.lower()
        if key in seen:
            parsed.duplicates.append(token)
            continue

        seen.add(key)
        parsed.valid.append(token)

    return parsed


def patient_name_from_email(email: str | None) -> str | None:
    """Derive a display name from an address.

    ``jane.doe@example.com`` becomes ``Jane Doe``.
    """
    if not email or "@" not in email:
        return None

    local_part = email.split("@", 1)[0]
    pieces = [piece for piece in re.split(r"[._-]+", local_part) if piece]
    if not pieces:
        return None

    return " ".join(piece[:1].upper() + piece[1:].lower() for piece in pieces)
