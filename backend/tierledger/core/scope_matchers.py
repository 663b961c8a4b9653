"""Scope Matchers — pluggable category -> pattern table for forbidden-detail detection.

Invariants:
    - Every pattern is compiled case-insensitive; matching never mutates input
    - Span order returned by find_spans is by position, earliest first
    - A category with no registered matchers never matches
    - find_spans covers every match of the detection patterns, so a detected
      detail is always redactable

Design Decisions:
    - Strategy table over if/elif chains: new categories are registered, the
      detection algorithm in detect_scope_creep stays untouched
    - Families group several categories under one reported detail type
      (code_snippets and specific_code are both "code")
"""

import re
from dataclasses import dataclass, field


def _compile(*patterns: str) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


FENCED_BLOCK = r"```[\s\S]*?```"


@dataclass
class DetailMatcherTable:
    """Category -> matcher family registry."""
    matchers: dict[str, tuple[re.Pattern, ...]] = field(default_factory=dict)
    redactors: dict[str, tuple[re.Pattern, ...]] = field(default_factory=dict)
    families: dict[str, str] = field(default_factory=dict)

    def register(
        self,
        category: str,
        patterns: tuple[str, ...],
        family: str | None = None,
        redact: tuple[str, ...] | None = None,
    ) -> None:
        self.matchers[category] = _compile(*patterns)
        if family:
            self.families[category] = family
        if redact:
            self.redactors[category] = _compile(*redact)

    def family(self, category: str) -> str:
        return self.families.get(category, category)

    def matches(self, category: str, text: str) -> bool:
        return any(p.search(text) for p in self.matchers.get(category, ()))

    def find_spans(self, category: str, text: str) -> list[tuple[int, int]]:
        """Non-overlapping spans to redact for this category, earliest first.

        Redactor spans widen a hit to the surrounding clause; matcher spans are
        always included so that every detected detail is covered.
        """
        patterns = self.redactors.get(category, ()) + self.matchers.get(category, ())
        spans: list[tuple[int, int]] = []
        for pattern in patterns:
            for m in pattern.finditer(text):
                if m.end() > m.start():
                    spans.append((m.start(), m.end()))
        spans.sort()
        merged: list[tuple[int, int]] = []
        for start, end in spans:
            if merged and start < merged[-1][1]:
                merged[-1] = (merged[-1][0], max(end, merged[-1][1]))
            else:
                merged.append((start, end))
        return merged


def build_default_table() -> DetailMatcherTable:
    table = DetailMatcherTable()
    table.register(
        "implementation",
        (r"\bimplement\w*", r"\bcode\b", r"\bfunction\b", r"\bclass\b"),
        redact=(r"\bimplement\w*\s+[^.\n]*\.?",),
    )
    table.register(
        "specific_technologies",
        (r"\bvue\.js\b", r"\breact\b", r"\btypescript\b", r"\bjavascript\b"),
    )
    table.register(
        "code",
        (FENCED_BLOCK, r"```", r"\bfunction\s+\w+", r"\bclass\s+\w+",
         r"\bconst\s+\w+\s*="),
        redact=(FENCED_BLOCK, r"\bfunction\s+\w+\s*\([^)]*\)",
                r"\bconst\s+\w+\s*=[^;\n]*;?"),
    )
    table.register(
        "implementation_details",
        (r"\bstep\s+\d+", r"\bfirst\s+do\b", r"\bthen\s+do\b"),
    )
    table.register(
        "specific_apis",
        (r"\.get\(", r"\.post\(", r"\bapi\."),
    )
    table.register("code_snippets", (FENCED_BLOCK,), family="code")
    table.register(
        "specific_code",
        (r"\bconst\s+\w+\s*=\s*\{", r"\bexport\s+function\b"),
        family="code",
    )
    table.register(
        "detailed_implementation_steps",
        (r"\bstep\s+\d+:", r"\bfirst:", r"\bsecond:", r"\bthird:"),
    )
    return table


DEFAULT_MATCHERS = build_default_table()


# --- Tier / granularity markers -----------------------------------------------

TIER_KEYWORDS = re.compile(r"\b(?:session|task|phase)s?\b", re.IGNORECASE)
ACTION_VERBS = re.compile(r"\b(?:implement|create|build)\w*", re.IGNORECASE)
GRANULAR_MARKERS = re.compile(
    r"\b(?:step|first|then|finally|code|function|class)\b|```", re.IGNORECASE,
)
