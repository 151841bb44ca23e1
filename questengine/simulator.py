"""Authoring-time simulator.

Walks content with a scratch tag state using the same matcher, composer and
mutation code as a live session. Dice are never rolled: the author picks the
outcome of each skill check. Every move is recorded so the author can step
back or jump to any earlier point.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from .content import Content, Step, StepOption
from .executor import (
    apply_mutations,
    apply_option_mutations,
    missing_requirements,
    resolve_variables,
    split_mutations,
)
from .matcher import scored_candidates, select_step, top_candidates
from .patches import compose
from .player import PlayerState
from .render import render_text

logger = logging.getLogger(__name__)

PASS = "pass"
FAIL = "fail"


@dataclass
class HistoryEntry:
    location: str
    step_id: Optional[str]
    option_label: str
    target: Optional[str] = None
    skills: Tuple[str, ...] = ()
    dc: Optional[int] = None
    outcome: Optional[str] = None
    tags_before: List[str] = field(default_factory=list)
    tags_after: List[str] = field(default_factory=list)
    vars_before: Dict[str, str] = field(default_factory=dict)
    vars_after: Dict[str, str] = field(default_factory=dict)
    added: List[str] = field(default_factory=list)
    removed: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SimulatedOption:
    index: int
    option: StepOption
    label: str
    available: bool
    missing: Tuple[str, ...]
    grants: Tuple[str, ...]
    consumes: Tuple[str, ...]


class Simulator:
    def __init__(self, content: Content, tags: Iterable[str] = (), *, rng: random.Random | None = None) -> None:
        self.content = content
        self.config = content.config
        self.rng = rng if rng is not None else random.Random()
        self.initial_tags = list(tags)
        self.player = PlayerState(tags=self.initial_tags)
        self.location = ""
        self.history: List[HistoryEntry] = []
        self.history_index = -1
        self._current: Optional[Step] = None

    # ---------- Views ----------
    def current_step(self) -> Optional[Step]:
        return self._current

    def patched_step(self) -> Optional[Step]:
        if self._current is None:
            return None
        return compose(
            self._current, self.content.patches_for(self._current.id), self.player, config=self.config
        )

    def _peek(self, step_id: str) -> Optional[Step]:
        """First top-scoring step for ``step_id`` without consuming randomness."""
        winners = top_candidates(scored_candidates(step_id, self.player, self.content.steps, config=self.config))
        return winners[0] if winners else None

    def options(self) -> List[SimulatedOption]:
        step = self.patched_step()
        if step is None:
            return []
        results = []
        for index, option in enumerate(step.options):
            grants, consumes = split_mutations(option.tags)
            if option.pass_target and not option.is_skill_check:
                target = self._peek(option.pass_target)
                if target is not None:
                    more_grants, more_consumes = split_mutations(target.tags)
                    grants += more_grants
                    consumes += more_consumes
            missing = missing_requirements(option, self.player, self.config)
            results.append(
                SimulatedOption(
                    index=index,
                    option=option,
                    label=render_text(option.label, self.player.variables),
                    available=not missing,
                    missing=tuple(missing),
                    grants=tuple(grants),
                    consumes=tuple(consumes),
                )
            )
        return results

    # ---------- Editing ----------
    def add_tag(self, tag: str) -> None:
        self.player.add_tag(tag)
        self._refresh()

    def remove_tag(self, tag: str) -> None:
        self.player.remove_tag(tag, self.config)
        self._refresh()

    def set_location(self, location: str) -> Optional[Step]:
        previous = self.location
        self.location = location
        self._refresh()
        if location and location != previous and self._current is not None:
            tags = list(self.player.tags)
            variables = dict(self.player.variables)
            self._record(
                HistoryEntry(
                    location=location,
                    step_id=self._current.id,
                    option_label="(traveled)" if previous else "(started)",
                    tags_before=tags,
                    tags_after=list(tags),
                    vars_before=variables,
                    vars_after=dict(variables),
                )
            )
        return self._current

    # ---------- Actions ----------
    def take_option(self, index: int, outcome: str = PASS) -> HistoryEntry:
        step = self.patched_step()
        if step is None:
            raise ValueError("no step is active at this location")
        if not 0 <= index < len(step.options):
            raise IndexError(f"option {index} out of range")
        if outcome not in (PASS, FAIL):
            raise ValueError(f"outcome must be '{PASS}' or '{FAIL}'")

        option = step.options[index]
        tags_before = list(self.player.tags)
        vars_before = dict(self.player.variables)
        target = option.pass_target
        entry_outcome = None
        if option.is_skill_check:
            entry_outcome = outcome
            target = option.pass_target if outcome == PASS else option.fail_target

        report = apply_option_mutations(option, self.player, self.config)
        next_step = None
        if target:
            next_step = select_step(target, self.player, self.content.steps, config=self.config, rng=self.rng)
            if next_step is not None:
                composed = compose(next_step, self.content.patches_for(next_step.id), self.player, config=self.config)
                report = report.merge(apply_mutations(composed.tags, self.player, self.config))
                resolve_variables(composed.vars, self.player, self.rng)
            else:
                logger.info("simulated target %r has no eligible step", target)

        entry = HistoryEntry(
            location=self.location,
            step_id=step.id,
            option_label=option.label,
            target=target,
            skills=option.skills if option.is_skill_check else (),
            dc=option.dc if option.is_skill_check else None,
            outcome=entry_outcome,
            tags_before=tags_before,
            tags_after=list(self.player.tags),
            vars_before=vars_before,
            vars_after=dict(self.player.variables),
            added=_unique(report.added),
            removed=_unique(report.removed),
        )
        self._record(entry)

        if target:
            self.location = target
            self._current = next_step
        else:
            self._refresh()
        return entry

    def back(self) -> None:
        if self.history_index < 0:
            return
        entry = self.history[self.history_index]
        self.player.tags = list(entry.tags_before)
        self.player.variables = dict(entry.vars_before)
        self.location = entry.location
        self.history_index -= 1
        self._refresh()

    def jump_to(self, index: int) -> None:
        if not 0 <= index < len(self.history):
            return
        entry = self.history[index]
        self.player.tags = list(entry.tags_after)
        self.player.variables = dict(entry.vars_after)
        self.location = entry.target or entry.location
        self.history_index = index
        self._refresh()

    def reset(self) -> None:
        self.player = PlayerState(tags=self.initial_tags)
        self.history = []
        self.history_index = -1
        self._refresh()

    # ---------- Internals ----------
    def _refresh(self) -> None:
        if not self.location:
            self._current = None
            return
        self._current = select_step(
            self.location, self.player, self.content.steps, config=self.config, rng=self.rng
        )

    def _record(self, entry: HistoryEntry) -> None:
        if self.history_index < len(self.history) - 1:
            del self.history[self.history_index + 1:]
        self.history.append(entry)
        self.history_index = len(self.history) - 1


def _unique(items: Iterable[str]) -> List[str]:
    seen: List[str] = []
    for item in items:
        if item not in seen:
            seen.append(item)
    return seen
