"""Skill checks: one die roll plus bonuses against a difficulty class."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from .content import StepOption
from .player import PlayerState
from .settings import STAT_NAMES, GameConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SkillBonus:
    source: str
    value: int
    kind: str = "stat"  # "stat" or "tag"


@dataclass(frozen=True)
class SkillCheckResult:
    roll: int
    bonuses: Tuple[SkillBonus, ...]
    total_bonus: int
    total: int
    dc: int
    success: bool


def skill_bonuses(sources: Iterable[str], player: PlayerState, config: GameConfig | None = None) -> Tuple[SkillBonus, ...]:
    """Stats contribute their effective value; any other source is a tag
    worth ``config.tag_skill_bonus`` per copy held."""
    config = config or GameConfig()
    bonuses = []
    for source in sources:
        if source in STAT_NAMES:
            bonuses.append(SkillBonus(source, player.effective_stat(source, config), "stat"))
        else:
            bonuses.append(SkillBonus(source, player.count(source) * config.tag_skill_bonus, "tag"))
    return tuple(bonuses)


def roll_die(rng: random.Random | None = None, sides: int = 6) -> int:
    rng = rng or random
    return rng.randint(1, sides)


def resolve_skill_check(
    sources: Iterable[str],
    dc: int,
    player: PlayerState,
    *,
    config: GameConfig | None = None,
    rng: random.Random | None = None,
    roll: Optional[int] = None,
) -> SkillCheckResult:
    config = config or GameConfig()
    if isinstance(sources, str):
        sources = (sources,)
    bonuses = skill_bonuses(sources, player, config)
    if roll is None:
        roll = roll_die(rng, config.die_sides)
    total_bonus = sum(bonus.value for bonus in bonuses)
    total = roll + total_bonus
    result = SkillCheckResult(
        roll=roll,
        bonuses=bonuses,
        total_bonus=total_bonus,
        total=total,
        dc=dc,
        success=total >= dc,
    )
    logger.debug("skill check %s: %d + %d vs %d", [b.source for b in bonuses], roll, total_bonus, dc)
    return result


def next_target(option: StepOption, result: SkillCheckResult) -> Optional[str]:
    return option.pass_target if result.success else option.fail_target
