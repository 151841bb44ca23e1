#!/usr/bin/env python3
"""Tag coverage matrix: which step wins a location for each tag combination."""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Sequence

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONTENT = REPO_ROOT / "quests"

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from questengine.content import Content, ContentError, load_content
from questengine.matcher import candidates_for, scored_candidates, top_candidates
from questengine.tags import parse_tag

MAX_TAGS = 6

SINGLE = "single"
AMBIGUOUS = "ambiguous"
NONE = "none"


@dataclass
class CoverageRow:
    tag_values: Dict[str, bool]
    matches: List[str]
    status: str


def relevant_tags(content: Content, location: str, limit: int = MAX_TAGS) -> List[str]:
    """Tag names the location's steps test, in first-seen order."""
    names: List[str] = []
    for step in candidates_for(location, content.steps):
        for raw in step.tags:
            parsed = parse_tag(raw)
            if parsed.is_player_condition and parsed.name not in names:
                names.append(parsed.name)
    return names[:limit]


def coverage_matrix(content: Content, location: str, tags: Optional[Sequence[str]] = None) -> List[CoverageRow]:
    if tags is None:
        tags = relevant_tags(content, location)
    rows: List[CoverageRow] = []
    for combo in range(2 ** len(tags)):
        values = {tag: bool(combo & (1 << bit)) for bit, tag in enumerate(tags)}
        counts = {tag: 1 for tag, present in values.items() if present}
        winners = top_candidates(scored_candidates(location, counts, content.steps, config=content.config))
        if not winners:
            status = NONE
        elif len(winners) == 1:
            status = SINGLE
        else:
            status = AMBIGUOUS
        rows.append(CoverageRow(tag_values=values, matches=[step.id for step in winners], status=status))
    return rows


def location_ids(content: Content) -> List[str]:
    """Step ids a player can travel to directly."""
    named = set(content.locations.values())
    return [step_id for step_id in content.step_ids() if step_id in named or "_" not in step_id]


def print_matrix(location: str, rows: Sequence[CoverageRow]) -> None:
    print(f"{location}:")
    if not rows:
        print("  (no steps)")
        return
    for row in rows:
        held = ", ".join(tag for tag, present in row.tag_values.items() if present) or "(none)"
        matched = ", ".join(row.matches) if row.matches else "-"
        print(f"  [{row.status:9}] {held} -> {matched}")
    gaps = sum(1 for row in rows if row.status == NONE)
    if gaps:
        print(f"  {gaps} combination(s) reach no step.")


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print tag coverage for quest locations.")
    parser.add_argument("content", nargs="?", default=str(DEFAULT_CONTENT))
    parser.add_argument("--location", action="append", help="Limit the report to these step ids.")
    return parser.parse_args(argv)


def main(argv: Sequence[str]) -> None:
    args = parse_args(argv[1:])
    try:
        content = load_content(args.content)
    except ContentError as exc:
        print(exc)
        sys.exit(1)

    for location in args.location or location_ids(content):
        print_matrix(location, coverage_matrix(content, location))
        print()


if __name__ == "__main__":
    main(sys.argv)
