"""Derived entry-point names for a cacheable method."""

from __future__ import annotations

import re
from dataclasses import dataclass

# A single trailing ?, ! or = moves to the end of every derived name
_PUNCTUATION_RE = re.compile(r"([?!=])$")


@dataclass(frozen=True)
class DerivedNames:
    """The four names generated next to an original method name."""

    original: str
    with_cache: str
    without_cache: str
    key_format: str
    clear_cache: str

    @classmethod
    def for_name(cls, original: str) -> DerivedNames:
        """Compute derived names, e.g. ``foo`` -> ``foo_with_cache`` ... ``clear_foo_cache``.

        ``valid?`` becomes ``valid_with_cache?`` and ``clear_valid_cache?``.
        """
        match = _PUNCTUATION_RE.search(original)
        punctuation = match.group(1) if match else ""
        base = original[: len(original) - len(punctuation)]

        return cls(
            original=original,
            with_cache=f"{base}_with_cache{punctuation}",
            without_cache=f"{base}_without_cache{punctuation}",
            key_format=f"{base}_key_format{punctuation}",
            clear_cache=f"clear_{base}_cache{punctuation}",
        )

    def generated(self) -> tuple[str, ...]:
        """Names of the four derived entry points."""
        return (self.with_cache, self.without_cache, self.key_format, self.clear_cache)
