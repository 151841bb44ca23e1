"""Step execution and option selection effects.

Execution order is fixed: tag mutations (names rendered against the
variables as they stand), quest auto-clear, variable resolution, log entry,
then the rendered step text.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Iterable, List, Mapping, Tuple

from .content import Step, StepOption, VarDeclarations
from .player import PlayerState
from .render import render_text
from .settings import GameConfig
from .tags import GRANT, conditions_met, parse_tag, unmet_conditions

logger = logging.getLogger(__name__)


@dataclass
class MutationReport:
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)
    leveled_up: bool = False

    def merge(self, other: "MutationReport") -> "MutationReport":
        return MutationReport(
            added=self.added + other.added,
            removed=self.removed + other.removed,
            leveled_up=self.leveled_up or other.leveled_up,
        )


@dataclass
class ExecutionResult:
    text: str
    mutations: MutationReport


@dataclass(frozen=True)
class OptionView:
    index: int
    option: StepOption
    label: str
    available: bool
    missing: tuple = ()


def apply_mutations(tokens: Iterable[str], player: PlayerState, config: GameConfig | None = None) -> MutationReport:
    """Apply ``+``/``-`` tokens in order; conditions are ignored."""
    config = config or GameConfig()
    before = player.tag_counts()
    level_before = player.level(config)
    for raw in tokens:
        parsed = parse_tag(raw)
        if not parsed.is_mutation:
            continue
        name = render_text(parsed.name, player.variables)
        if parsed.operator == GRANT:
            player.add_tag(name)
        else:
            player.remove_tag(name, config)
    after = player.tag_counts()
    return MutationReport(
        added=sorted((after - before).elements()),
        removed=sorted((before - after).elements()),
        leveled_up=player.level(config) > level_before,
    )


def resolve_variables(declarations: VarDeclarations, player: PlayerState, rng: random.Random | None = None) -> None:
    rng = rng or random
    for name, choices in declarations.items():
        if choices is None:
            player.clear_variable(name)
            continue
        if not choices:
            continue
        choice = rng.choice(choices)
        if isinstance(choice, Mapping):
            player.clear_variable(name)
            for key, value in choice.items():
                player.set_variable(f"{name}.{key}", value)
        else:
            player.set_variable(name, choice)


def execute(
    step: Step,
    player: PlayerState,
    *,
    config: GameConfig | None = None,
    rng: random.Random | None = None,
) -> ExecutionResult:
    config = config or GameConfig()
    report = apply_mutations(step.tags, player, config)
    resolve_variables(step.vars, player, rng)
    if step.log:
        player.add_log_entry(render_text(step.log, player.variables), config.max_log_entries)
    player.steps_completed += 1
    if report.added or report.removed:
        logger.debug("step %r added %s removed %s", step.id, report.added, report.removed)
    return ExecutionResult(text=render_text(step.text, player.variables), mutations=report)


def execute_step(
    step: Step,
    player: PlayerState,
    *,
    config: GameConfig | None = None,
    rng: random.Random | None = None,
) -> str:
    return execute(step, player, config=config, rng=rng).text


def apply_option_mutations(option: StepOption, player: PlayerState, config: GameConfig | None = None) -> MutationReport:
    return apply_mutations(option.tags, player, config)


def _option_counts(player: PlayerState | Mapping[str, int], config: GameConfig) -> Mapping[str, int]:
    if isinstance(player, PlayerState):
        return player.effective_counts(config)
    return player


def is_option_available(option: StepOption, player: PlayerState | Mapping[str, int], config: GameConfig | None = None) -> bool:
    """Player conditions only; internal tags never gate a visible choice."""
    config = config or GameConfig()
    return conditions_met(
        option.tags,
        _option_counts(player, config),
        skip_internal=True,
        internal_prefix=config.internal_prefix,
    )


def missing_requirements(option: StepOption, player: PlayerState | Mapping[str, int], config: GameConfig | None = None) -> List[str]:
    config = config or GameConfig()
    return unmet_conditions(
        option.tags,
        _option_counts(player, config),
        skip_internal=True,
        internal_prefix=config.internal_prefix,
    )


def visible_options(step: Step, player: PlayerState, config: GameConfig | None = None) -> List[OptionView]:
    """Options to show: hidden ones only when available, others always."""
    config = config or GameConfig()
    counts = player.effective_counts(config)
    views: List[OptionView] = []
    for index, option in enumerate(step.options):
        missing = missing_requirements(option, counts, config)
        available = not missing
        if option.hidden and not available:
            continue
        views.append(
            OptionView(
                index=index,
                option=option,
                label=render_text(option.label, player.variables),
                available=available,
                missing=tuple(missing),
            )
        )
    return views


def split_mutations(tokens: Iterable[str]) -> Tuple[List[str], List[str]]:
    """Names a token list would grant and consume, without applying them."""
    grants: List[str] = []
    consumes: List[str] = []
    for raw in tokens:
        parsed = parse_tag(raw)
        if parsed.operator == GRANT:
            grants.append(parsed.name)
        elif parsed.is_mutation:
            consumes.append(parsed.name)
    return grants, consumes
