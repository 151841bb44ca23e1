"""Patch composition.

Patches attach conditional text, options, variables and tag mutations to a
step owned by another quest file. Composition never mutates stored content:
it returns either the base step itself or a new composed step.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import replace
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from .content import Step, StepOption, StepPatch
from .player import PlayerState
from .schema import is_patch_id
from .settings import GameConfig
from .tags import BASE_FORBID, comparison_holds, condition_met, parse_tag

logger = logging.getLogger(__name__)


def base_tag_counts(base: Step) -> Counter:
    """Names on the base step, operators stripped."""
    return Counter(parse_tag(raw).name for raw in base.tags)


def patch_applies(patch: StepPatch, base: Step, counts: Mapping[str, int]) -> bool:
    if patch.target != base.id or is_patch_id(patch.target):
        return False
    base_counts: Optional[Counter] = None
    for raw in patch.tags:
        parsed = parse_tag(raw)
        if parsed.is_mutation:
            continue
        if parsed.is_base_condition:
            if base_counts is None:
                base_counts = base_tag_counts(base)
            holds = comparison_holds(base_counts.get(parsed.name, 0), parsed.comparison, parsed.value)
            if holds == (parsed.operator == BASE_FORBID):
                return False
        elif not condition_met(parsed, counts):
            return False
    return True


def applicable_patches(base: Step, patches: Iterable[StepPatch], counts: Mapping[str, int]) -> List[StepPatch]:
    return [patch for patch in patches if patch_applies(patch, base, counts)]


def compose(
    base: Step,
    patches: Iterable[StepPatch],
    player: PlayerState | Mapping[str, int],
    *,
    config: GameConfig | None = None,
) -> Step:
    config = config or GameConfig()
    counts = player.effective_counts(config) if isinstance(player, PlayerState) else player
    applied = applicable_patches(base, patches, counts)
    if not applied:
        return base

    tags: List[str] = list(base.tags)
    options: List[StepOption] = list(base.options)
    variables: Dict = dict(base.vars)
    prepends: List[str] = []
    appends: List[str] = []
    replacement: Optional[str] = None

    for patch in applied:
        tags.extend(raw for raw in patch.tags if parse_tag(raw).is_mutation)
        if patch.text.prepend:
            prepends.append(patch.text.prepend)
        if patch.text.append:
            appends.append(patch.text.append)
        if patch.text.replace:
            replacement = patch.text.replace
        options.extend(patch.options)
        variables.update(patch.vars)

    if replacement is not None:
        text = replacement
    else:
        sep = config.patch_text_separator
        text = sep.join([*prepends, base.text, *appends]) if (prepends or appends) else base.text

    logger.debug("applied %d patch(es) to %r", len(applied), base.id)
    return replace(base, tags=tuple(tags), text=text, options=tuple(options), vars=MappingProxyType(variables))
