"""Step selection: hard filtering, preferred-tag scoring and random tie-break."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Sequence, Tuple

from .player import PlayerState
from .schema import is_patch_id
from .settings import GameConfig
from .tags import FORBID, REQUIRE_EXPLICIT, condition_met, conditions_met, parse_tag

logger = logging.getLogger(__name__)

TagCounts = Mapping[str, int]


@dataclass(frozen=True)
class TagAnalysis:
    tag: str
    kind: str  # "required" or "blocked"
    satisfied: bool
    preferred: bool = False


@dataclass
class StepDebugInfo:
    step_id: str
    eligible: bool
    score: int
    tags: List[TagAnalysis] = field(default_factory=list)


def _counts(player: PlayerState | TagCounts, config: GameConfig) -> TagCounts:
    if isinstance(player, PlayerState):
        return player.effective_counts(config)
    return player


def is_eligible(step, counts: TagCounts) -> bool:
    return conditions_met(step.tags, counts)


def score_step(step, counts: TagCounts, weight: int = 5) -> int:
    """``weight`` per satisfied ``@`` token; bare requires only filter."""
    score = 0
    for raw in step.tags:
        parsed = parse_tag(raw)
        if parsed.operator == REQUIRE_EXPLICIT and condition_met(parsed, counts):
            score += weight
    return score


def candidates_for(step_id: str, steps: Iterable) -> List:
    wanted = step_id.strip().lower()
    return [s for s in steps if s.id.lower() == wanted and not is_patch_id(s.id)]


def eligible_steps(step_id: str, player: PlayerState | TagCounts, steps: Iterable, *, config: GameConfig | None = None) -> List:
    config = config or GameConfig()
    counts = _counts(player, config)
    return [s for s in candidates_for(step_id, steps) if is_eligible(s, counts)]


def scored_candidates(
    step_id: str,
    player: PlayerState | TagCounts,
    steps: Iterable,
    *,
    config: GameConfig | None = None,
) -> List[Tuple[object, int]]:
    config = config or GameConfig()
    counts = _counts(player, config)
    return [
        (step, score_step(step, counts, config.preferred_tag_weight))
        for step in candidates_for(step_id, steps)
        if is_eligible(step, counts)
    ]


def top_candidates(scored: Sequence[Tuple[object, int]]) -> List:
    if not scored:
        return []
    best = max(score for _, score in scored)
    return [step for step, score in scored if score == best]


def select_step(
    step_id: str,
    player: PlayerState | TagCounts,
    steps: Iterable,
    *,
    config: GameConfig | None = None,
    rng: random.Random | None = None,
):
    """Return the winning step for ``step_id`` or None for a coverage gap."""
    rng = rng or random
    winners = top_candidates(scored_candidates(step_id, player, steps, config=config))
    if not winners:
        logger.debug("no step matches %r", step_id)
        return None
    if len(winners) > 1:
        logger.debug("%d steps tied for %r", len(winners), step_id)
    return rng.choice(winners)


def analyze_step(step, counts: TagCounts, weight: int = 5) -> StepDebugInfo:
    analysis: List[TagAnalysis] = []
    for raw in step.tags:
        parsed = parse_tag(raw)
        if not parsed.is_player_condition:
            continue
        analysis.append(
            TagAnalysis(
                tag=raw,
                kind="blocked" if parsed.operator == FORBID else "required",
                satisfied=condition_met(parsed, counts),
                preferred=parsed.operator == REQUIRE_EXPLICIT,
            )
        )
    eligible = all(item.satisfied for item in analysis)
    return StepDebugInfo(
        step_id=step.id,
        eligible=eligible,
        score=score_step(step, counts, weight) if eligible else 0,
        tags=analysis,
    )
