"""Presentation-neutral game flow.

A :class:`GameSession` owns one player state and walks it through
navigation, step display, option selection and skill checks. Every player
action returns an :class:`Outcome`; content problems surface as outcome
kinds rather than exceptions.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Callable, List, Mapping, Optional

from .content import Content, Step, StepOption
from .executor import MutationReport, OptionView, apply_option_mutations, execute, visible_options
from .matcher import select_step
from .patches import compose
from .player import PlayerState
from .skills import SkillCheckResult, next_target, resolve_skill_check

logger = logging.getLogger(__name__)

CHARACTER_CREATION = "character_creation"
NAVIGATION = "navigation"
DISPLAY_STEP = "display_step"
SKILL_CHECK_ROLL = "skill_check_roll"
SKILL_CHECK_RESULT = "skill_check_result"
LEVEL_UP = "level_up"

OUTCOME_STEP = "step"
OUTCOME_NO_MATCH = "no_match"
OUTCOME_ERROR = "error"
OUTCOME_NAVIGATION = "navigation"
OUTCOME_SKILL_CHECK = "skill_check"
OUTCOME_SKILL_RESULT = "skill_result"

NOTHING_HERE = "You don't see anything of interest here. Try another location."
SOMETHING_WRONG = "Something went wrong. Returning to navigation."


@dataclass
class StepView:
    step: Step
    text: str
    options: List[OptionView] = field(default_factory=list)


@dataclass
class Outcome:
    kind: str
    view: Optional[StepView] = None
    message: Optional[str] = None
    result: Optional[SkillCheckResult] = None
    option: Optional[StepOption] = None
    mutations: Optional[MutationReport] = None

    @property
    def ok(self) -> bool:
        return self.kind not in (OUTCOME_NO_MATCH, OUTCOME_ERROR)


class GameSession:
    def __init__(
        self,
        content: Content,
        player: PlayerState | None = None,
        *,
        rng: random.Random | None = None,
        on_change: Callable[[PlayerState], None] | None = None,
    ) -> None:
        self.content = content
        self.config = content.config
        self.rng = rng if rng is not None else random
        self.on_change = on_change
        self.current: Optional[StepView] = None
        self.pending_option: Optional[StepOption] = None
        self.last_result: Optional[SkillCheckResult] = None
        if player is None:
            self.player = PlayerState.new(self.config)
            self.phase = CHARACTER_CREATION
        else:
            self.player = player
            self.phase = LEVEL_UP if player.leveled_up else NAVIGATION

    # ---------- Lifecycle ----------
    def start_new_game(self, name: str | None = None, stats: Mapping[str, int] | None = None) -> None:
        self.player = PlayerState.new(self.config, name, stats)
        self.current = None
        self.pending_option = None
        self.last_result = None
        self.phase = NAVIGATION
        self._changed()

    def resolve_location(self, coordinate: str) -> str:
        return self.content.resolve_location(coordinate)

    # ---------- Player actions ----------
    def navigate(self, location: str) -> Outcome:
        step_id = location.strip()
        if not self.content.has_step(step_id):
            step_id = self.content.resolve_location(step_id)
        self.pending_option = None
        self.last_result = None
        step = self._select(step_id)
        if step is None:
            self.current = None
            self.phase = NAVIGATION
            return Outcome(OUTCOME_NO_MATCH, message=NOTHING_HERE)
        return self._load(step)

    def select_option(self, index: int) -> Outcome:
        """Pick ``self.current.options[index]``."""
        if self.phase != DISPLAY_STEP or self.current is None:
            return Outcome(OUTCOME_ERROR, message="There is nothing to choose right now.")
        if not 0 <= index < len(self.current.options):
            return Outcome(OUTCOME_ERROR, message="Pick a valid option.")
        view = self.current.options[index]
        if not view.available:
            return Outcome(OUTCOME_ERROR, message="That option is not available.")

        option = view.option
        mutations = apply_option_mutations(option, self.player, self.config)
        if option.is_skill_check:
            self.pending_option = option
            self.phase = SKILL_CHECK_ROLL
            self._changed()
            return Outcome(OUTCOME_SKILL_CHECK, option=option, mutations=mutations)
        if option.pass_target:
            return self._follow(option.pass_target, mutations)
        return self._end_interaction(mutations)

    def roll_skill_check(self, roll: int | None = None) -> Outcome:
        option = self.pending_option
        if self.phase != SKILL_CHECK_ROLL or option is None or option.dc is None:
            return Outcome(OUTCOME_ERROR, message="No skill check is pending.")
        result = resolve_skill_check(
            option.skills, option.dc, self.player, config=self.config, rng=self.rng, roll=roll
        )
        self.last_result = result
        self.phase = SKILL_CHECK_RESULT
        return Outcome(OUTCOME_SKILL_RESULT, result=result, option=option)

    def continue_after_skill_check(self) -> Outcome:
        option, result = self.pending_option, self.last_result
        if self.phase != SKILL_CHECK_RESULT or option is None or result is None:
            return Outcome(OUTCOME_ERROR, message="No skill check result to continue from.")
        self.pending_option = None
        self.last_result = None
        target = next_target(option, result)
        if target:
            return self._follow(target)
        return self._end_interaction()

    def increase_stat(self, stat: str) -> None:
        self.player.increase_stat(stat, self.config.stat_increase_amount)
        self.phase = DISPLAY_STEP if self.current is not None else NAVIGATION
        self._changed()

    def leave(self) -> Outcome:
        """Abandon the displayed step and return to navigation."""
        return self._end_interaction()

    # ---------- Internals ----------
    def _select(self, step_id: str) -> Optional[Step]:
        return select_step(
            step_id, self.player, self.content.steps, config=self.config, rng=self.rng
        )

    def _load(self, step: Step) -> Outcome:
        composed = compose(step, self.content.patches_for(step.id), self.player, config=self.config)
        executed = execute(composed, self.player, config=self.config, rng=self.rng)
        self.player.current_step_id = step.id
        view = StepView(
            step=composed,
            text=executed.text,
            options=visible_options(composed, self.player, self.config),
        )
        self.current = view
        self.phase = LEVEL_UP if self.player.leveled_up else DISPLAY_STEP
        self._changed()
        return Outcome(OUTCOME_STEP, view=view, mutations=executed.mutations)

    def _follow(self, target: str, mutations: MutationReport | None = None) -> Outcome:
        step = self._select(target)
        if step is None:
            logger.warning("no eligible step for target %r", target)
            self.current = None
            self.player.current_step_id = None
            self.phase = LEVEL_UP if self.player.leveled_up else NAVIGATION
            self._changed()
            return Outcome(OUTCOME_ERROR, message=SOMETHING_WRONG, mutations=mutations)
        outcome = self._load(step)
        if mutations is not None and outcome.mutations is not None:
            outcome.mutations = mutations.merge(outcome.mutations)
        return outcome

    def _end_interaction(self, mutations: MutationReport | None = None) -> Outcome:
        self.current = None
        self.pending_option = None
        self.player.current_step_id = None
        self.phase = LEVEL_UP if self.player.leveled_up else NAVIGATION
        self._changed()
        return Outcome(OUTCOME_NAVIGATION, mutations=mutations)

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self.player)
