"""Tag tokens for quest content.

A tag token is a tag name carrying an operator prefix and, for conditions,
an optional count comparison:

    ``inv:rope``     require (bare)
    ``@trait:brave`` require, preferred when scoring
    ``!quest``       forbid
    ``+inv:rope``    grant one copy
    ``-inv:silver``  consume one copy
    ``^visited``     base step must carry the tag (patches only)
    ``^!visited``    base step must not carry the tag (patches only)
    ``@level>1``     require with a count comparison
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

BASE_FORBID = "^!"
BASE_REQUIRE = "^"
REQUIRE_EXPLICIT = "@"
FORBID = "!"
GRANT = "+"
CONSUME = "-"
REQUIRE = ""

# Longest prefix first.
OPERATORS = (BASE_FORBID, BASE_REQUIRE, REQUIRE_EXPLICIT, FORBID, GRANT, CONSUME)

REQUIRE_OPERATORS = frozenset({REQUIRE, REQUIRE_EXPLICIT})
MUTATION_OPERATORS = frozenset({GRANT, CONSUME})
BASE_OPERATORS = frozenset({BASE_REQUIRE, BASE_FORBID})

COMPARISON_PATTERN = re.compile(r"^(.+?)([=<>])(\d+)$")

INTERNAL_PREFIX = "_"


@dataclass(frozen=True)
class ParsedTag:
    operator: str
    name: str
    comparison: Optional[str] = None
    value: Optional[int] = None

    @property
    def is_mutation(self) -> bool:
        return self.operator in MUTATION_OPERATORS

    @property
    def is_base_condition(self) -> bool:
        return self.operator in BASE_OPERATORS

    @property
    def is_player_condition(self) -> bool:
        return self.operator in REQUIRE_OPERATORS or self.operator == FORBID


def is_internal_tag(name: str, prefix: str = INTERNAL_PREFIX) -> bool:
    return bool(prefix) and name.startswith(prefix)


def parse_tag(raw: str) -> ParsedTag:
    if not isinstance(raw, str):
        raise TypeError(f"tag token must be a string, got {type(raw).__name__}")

    operator = REQUIRE
    rest = raw
    for prefix in OPERATORS:
        if rest.startswith(prefix):
            operator = prefix
            rest = rest[len(prefix):]
            break

    # grant/consume never carry comparisons; keep the literal name
    if operator in MUTATION_OPERATORS:
        return ParsedTag(operator, rest)

    match = COMPARISON_PATTERN.match(rest)
    if match:
        return ParsedTag(operator, match.group(1), match.group(2), int(match.group(3)))
    return ParsedTag(operator, rest)


def format_tag(parsed: ParsedTag) -> str:
    result = parsed.operator + parsed.name
    if parsed.comparison is not None and parsed.value is not None:
        result += f"{parsed.comparison}{parsed.value}"
    return result


def comparison_holds(count: int, comparison: Optional[str], value: Optional[int]) -> bool:
    if comparison is None or value is None:
        return count >= 1
    if comparison == "=":
        return count == value
    if comparison == "<":
        return count < value
    if comparison == ">":
        return count > value
    return count >= 1


def condition_met(parsed: ParsedTag, counts: Mapping[str, int]) -> bool:
    """Evaluate one player-facing condition against held tag counts.

    Mutation and base-step tokens are not conditions on the player and
    always pass here.
    """
    if not parsed.is_player_condition:
        return True
    holds = comparison_holds(counts.get(parsed.name, 0), parsed.comparison, parsed.value)
    if parsed.operator == FORBID:
        return not holds
    return holds


def conditions_met(
    tokens: Iterable[str],
    counts: Mapping[str, int],
    *,
    skip_internal: bool = False,
    internal_prefix: str = INTERNAL_PREFIX,
) -> bool:
    for raw in tokens:
        parsed = parse_tag(raw)
        if skip_internal and is_internal_tag(parsed.name, internal_prefix):
            continue
        if not condition_met(parsed, counts):
            return False
    return True


def unmet_conditions(
    tokens: Iterable[str],
    counts: Mapping[str, int],
    *,
    skip_internal: bool = False,
    internal_prefix: str = INTERNAL_PREFIX,
) -> list:
    missing = []
    for raw in tokens:
        parsed = parse_tag(raw)
        if skip_internal and is_internal_tag(parsed.name, internal_prefix):
            continue
        if not condition_met(parsed, counts):
            missing.append(raw)
    return missing
