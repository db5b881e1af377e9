"""Fixed field -> placeholder token mapping.

Keys match spreadsheet column headers; values are the literal tokens embedded
in both the preview HTML template and the ``.docx`` template.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass


DEFAULT_MAPPINGS: tuple[tuple[str, str], ...] = (
    ("Client", "[INSERT_CLIENT_NAME]"),
    ("Desired Completion Date", "[INSERT_DATE]"),
    ("Room Details (Workload)", "[INSERT_ROOM_DETAILS]"),
    ("Functional Requirements", "[INSERT_FUNCTIONAL_REQUIREMENTS]"),
    ("Control System Requirements", "[INSERT_CONTROL_SYSTEM]"),
    ("Preferred Brands or Technology Standards", "[INSERT_BRANDS_STANDARDS]"),
    ("Existing Equipment Integration", "[INSERT_EXISTING_INTEGRATION]"),
    ("Network Strategy", "[INSERT_CLIENT_NETWORK_OR_DEDICATED_AV]"),
    ("Cabling & Infrastructure", "[INSERT_CABLING_DETAILS]"),
    ("Budgetary Estimates", "[INSERT_BUDGET]"),
    ("Site Constraints", "[INSERT_SITE_CONSTRAINTS]"),
)


@dataclass(frozen=True)
class FieldMapping:
    """Ordered, immutable pairs of (field name, placeholder token)."""

    pairs: tuple[tuple[str, str], ...]

    def __post_init__(self) -> None:
        seen_fields: set[str] = set()
        seen_tokens: set[str] = set()
        for field, token in self.pairs:
            if not token:
                raise ValueError(f"Field {field!r} has an empty placeholder token")
            if field in seen_fields:
                raise ValueError(f"Duplicate field in mapping: {field!r}")
            if token in seen_tokens:
                raise ValueError(f"Duplicate placeholder token in mapping: {token!r}")
            seen_fields.add(field)
            seen_tokens.add(token)

    @classmethod
    def from_dict(cls, mapping: Mapping[str, str]) -> FieldMapping:
        return cls(tuple((str(k), str(v)) for k, v in mapping.items()))

    @classmethod
    def default(cls) -> FieldMapping:
        return cls(DEFAULT_MAPPINGS)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        return iter(self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)

    @property
    def fields(self) -> list[str]:
        return [f for f, _ in self.pairs]

    @property
    def tokens(self) -> set[str]:
        return {t for _, t in self.pairs}

    def pattern(self) -> re.Pattern[str]:
        """All tokens as one longest-first alternation (see :func:`token_pattern`)."""
        return token_pattern(self.tokens)


def token_pattern(tokens: Iterable[str]) -> re.Pattern[str]:
    """Compile *tokens* into one alternation, longest first.

    Substituting through a single ``sub`` pass scans template text only, so
    an inserted value is never rescanned for other tokens.
    """
    ordered = sorted(set(tokens), key=lambda t: (-len(t), t))
    if not ordered:
        return re.compile(r"(?!)")
    return re.compile("|".join(re.escape(t) for t in ordered))
