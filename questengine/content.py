"""Content records and loading.

Raw content is authored as JSON with shorthand forms (option strings,
preset names, ``@patch:`` steps, string or object variable choices). Everything
is normalised here into one record shape so the engine never sees shorthand.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .schema import (
    PATCH_PREFIX,
    collect_presets,
    is_patch_id,
    is_presets_entry,
    patch_target_of,
    validate_content,
)
from .settings import GameConfig

logger = logging.getLogger(__name__)

CONFIG_FILE = "_config.json"
LOCATIONS_FILE = "_locations.json"
OPTION_SEPARATOR = "::"

VarChoice = Union[str, Mapping[str, str]]
VarDeclarations = Mapping[str, Optional[Tuple[VarChoice, ...]]]

_EMPTY_VARS: VarDeclarations = MappingProxyType({})


class ContentError(ValueError):
    """Structural content problems found while building a content set."""

    def __init__(self, errors: Sequence[str], heading: str = "Invalid quest content") -> None:
        self.errors = list(errors)
        super().__init__(f"{heading}:\n- " + "\n- ".join(self.errors))


@dataclass(frozen=True)
class StepOption:
    label: str
    tags: Tuple[str, ...] = ()
    pass_target: Optional[str] = None
    fail_target: Optional[str] = None
    skills: Tuple[str, ...] = ()
    dc: Optional[int] = None
    hidden: bool = False

    @property
    def is_skill_check(self) -> bool:
        return bool(self.skills) and self.dc is not None


@dataclass(frozen=True)
class TextModification:
    prepend: Optional[str] = None
    append: Optional[str] = None
    replace: Optional[str] = None

    def is_empty(self) -> bool:
        return self.prepend is None and self.append is None and self.replace is None


@dataclass(frozen=True)
class Step:
    id: str
    tags: Tuple[str, ...] = ()
    text: str = ""
    vars: VarDeclarations = field(default_factory=lambda: _EMPTY_VARS)
    options: Tuple[StepOption, ...] = ()
    log: Optional[str] = None
    source: Optional[str] = field(default=None, compare=False)


@dataclass(frozen=True)
class StepPatch:
    target: str
    tags: Tuple[str, ...] = ()
    text: TextModification = field(default_factory=TextModification)
    options: Tuple[StepOption, ...] = ()
    vars: VarDeclarations = field(default_factory=lambda: _EMPTY_VARS)
    source: Optional[str] = field(default=None, compare=False)


def normalize_vars(raw: Any) -> VarDeclarations:
    """Return read-only declarations: name -> tuple of choices, or None to clear."""
    if not isinstance(raw, Mapping) or not raw:
        return _EMPTY_VARS
    result: Dict[str, Optional[Tuple[VarChoice, ...]]] = {}
    for name, options in raw.items():
        if options is None:
            result[str(name)] = None
            continue
        if isinstance(options, (str, Mapping)):
            options = [options]
        choices: List[VarChoice] = []
        for choice in options:
            if isinstance(choice, Mapping):
                choices.append(MappingProxyType({str(k): str(v) for k, v in choice.items()}))
            elif choice is not None:
                choices.append(str(choice))
        result[str(name)] = tuple(choices)
    return MappingProxyType(result)


def _as_tags(raw: Any) -> Tuple[str, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    return tuple(tag for tag in raw if isinstance(tag, str))


def expand_option(raw: Union[str, Mapping[str, Any], StepOption]) -> StepOption:
    if isinstance(raw, StepOption):
        return raw
    if isinstance(raw, str):
        label, sep, target = raw.partition(OPTION_SEPARATOR)
        return StepOption(label=label, pass_target=(target or None) if sep else None)
    if not isinstance(raw, Mapping):
        raise TypeError(f"option must be a string or a mapping, got {type(raw).__name__}")

    skill = raw.get("skill")
    if isinstance(skill, str):
        skills: Tuple[str, ...] = (skill,)
    elif isinstance(skill, (list, tuple)):
        skills = tuple(s for s in skill if isinstance(s, str))
    else:
        skills = ()
    dc = raw.get("dc")
    return StepOption(
        label=str(raw.get("label", "")),
        tags=_as_tags(raw.get("tags")),
        pass_target=raw.get("pass") or None,
        fail_target=raw.get("fail") or None,
        skills=skills,
        dc=dc if isinstance(dc, int) and not isinstance(dc, bool) else None,
        hidden=bool(raw.get("hidden", False)),
    )


def expand_options(raw: Any, presets: Optional[Mapping[str, Any]] = None) -> Tuple[StepOption, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        raw = (presets or {}).get(raw) or []
    return tuple(expand_option(option) for option in raw)


def _text_modification(raw: Any) -> TextModification:
    if not isinstance(raw, Mapping):
        return TextModification()
    return TextModification(
        prepend=raw.get("prepend"),
        append=raw.get("append"),
        replace=raw.get("replace"),
    )


def step_from_raw(raw: Mapping[str, Any], presets: Optional[Mapping[str, Any]] = None, source: Optional[str] = None) -> Step:
    return Step(
        id=raw["id"],
        tags=_as_tags(raw.get("tags")),
        text=raw.get("text") or "",
        vars=normalize_vars(raw.get("vars")),
        options=expand_options(raw.get("options"), presets),
        log=raw.get("log") or None,
        source=source,
    )


def patch_from_raw(raw: Mapping[str, Any], presets: Optional[Mapping[str, Any]] = None, source: Optional[str] = None) -> StepPatch:
    """Build a patch from either ``{"target": ...}`` or an ``@patch:`` step."""
    target = raw.get("target")
    if target is None:
        target = patch_target_of(raw["id"])
    return StepPatch(
        target=target,
        tags=_as_tags(raw.get("tags")),
        text=_text_modification(raw.get("text")),
        options=expand_options(raw.get("options"), presets),
        vars=normalize_vars(raw.get("vars")),
        source=source,
    )


def step_to_patch(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Raw ``@patch:`` step -> raw patch record, keeping only declared fields."""
    patch: Dict[str, Any] = {"target": patch_target_of(raw["id"])}
    for key in ("tags", "text", "options", "vars"):
        if raw.get(key):
            patch[key] = raw[key]
    return patch


class Content:
    """Immutable content set loaded once per session."""

    def __init__(
        self,
        steps: Iterable[Step],
        patches: Iterable[StepPatch] = (),
        *,
        config: GameConfig | None = None,
        locations: Mapping[str, str] | None = None,
        presets: Mapping[str, Any] | None = None,
    ) -> None:
        self.steps: Tuple[Step, ...] = tuple(steps)
        self.patches: Tuple[StepPatch, ...] = tuple(patches)
        self.config = config or GameConfig()
        self.locations: Dict[str, str] = {str(k).strip().upper(): str(v) for k, v in (locations or {}).items()}
        self.presets: Dict[str, Any] = dict(presets or {})

        self._steps_by_id: Dict[str, List[Step]] = defaultdict(list)
        for step in self.steps:
            self._steps_by_id[step.id.lower()].append(step)
        self._patches_by_target: Dict[str, List[StepPatch]] = defaultdict(list)
        for patch in self.patches:
            self._patches_by_target[patch.target].append(patch)

    def steps_for(self, step_id: str) -> List[Step]:
        return list(self._steps_by_id.get(step_id.lower(), ()))

    def has_step(self, step_id: str) -> bool:
        return step_id.lower() in self._steps_by_id

    def step_ids(self) -> List[str]:
        seen: Dict[str, None] = {}
        for step in self.steps:
            seen.setdefault(step.id, None)
        return list(seen)

    def patches_for(self, target: str) -> List[StepPatch]:
        return list(self._patches_by_target.get(target, ()))

    def resolve_location(self, coordinate: str) -> str:
        """Coordinate -> location name; unknown coordinates pass through normalised."""
        normalized = coordinate.strip().upper()
        return self.locations.get(normalized, normalized)

    def __repr__(self) -> str:
        return f"Content(steps={len(self.steps)}, patches={len(self.patches)})"


def build_content(payload: Mapping[str, Any], *, source: Optional[str] = None) -> Content:
    errors, warnings = validate_content(payload)
    if errors:
        raise ContentError(errors)
    for warning in warnings:
        logger.warning("%s", warning)

    presets = collect_presets(payload)
    steps: List[Step] = []
    patches: List[StepPatch] = []
    for raw in payload.get("steps", []):
        if is_presets_entry(raw):
            continue
        if is_patch_id(raw.get("id")):
            patches.append(patch_from_raw(raw, presets, source))
        else:
            steps.append(step_from_raw(raw, presets, source))
    for raw in payload.get("patches") or []:
        patches.append(patch_from_raw(raw, presets, source))

    content = Content(
        steps,
        patches,
        config=GameConfig.from_dict(payload.get("config")),
        locations=payload.get("locations") or {},
        presets=presets,
    )
    logger.debug("built %r", content)
    return content


@dataclass
class MergeReport:
    files: List[Tuple[str, str, int]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    shared_ids: List[str] = field(default_factory=list)


def load_json(path: Path) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def merge_quest_files(directory: Path | str) -> Tuple[Dict[str, Any], MergeReport]:
    """Consolidate a quest directory into one payload.

    Reads ``_config.json`` and ``_locations.json`` when present, then every
    ``*.json`` not starting with ``_`` in sorted order. ``@patch:`` steps
    become patch records.
    """
    directory = Path(directory)
    report = MergeReport()

    config: Any = {}
    locations: Any = {}
    config_path = directory / CONFIG_FILE
    if config_path.exists():
        try:
            config = load_json(config_path)
        except (OSError, json.JSONDecodeError) as exc:
            report.errors.append(f"{CONFIG_FILE}: could not be read ({exc}).")
    locations_path = directory / LOCATIONS_FILE
    if locations_path.exists():
        try:
            locations = load_json(locations_path)
        except (OSError, json.JSONDecodeError) as exc:
            report.errors.append(f"{LOCATIONS_FILE}: could not be read ({exc}).")

    steps: List[Dict[str, Any]] = []
    patches: List[Tuple[str, Dict[str, Any]]] = []
    presets: Dict[str, Any] = {}

    quest_files = sorted(
        p for p in directory.glob("*.json") if p.is_file() and not p.name.startswith("_")
    )
    for quest_path in quest_files:
        name = quest_path.name
        try:
            quest = load_json(quest_path)
        except (OSError, json.JSONDecodeError) as exc:
            report.errors.append(f"{name}: could not be read ({exc}).")
            continue
        if not isinstance(quest, Mapping) or not isinstance(quest.get("steps"), list):
            report.errors.append(f"{name}: quest file must be an object with a 'steps' list.")
            continue

        file_presets = dict(quest.get("option_presets") or {})
        for entry in quest["steps"]:
            if is_presets_entry(entry) and isinstance(entry.get("option_presets"), Mapping):
                file_presets.update(entry["option_presets"])
        for preset_name, options in file_presets.items():
            if preset_name in presets and presets[preset_name] != options:
                report.errors.append(f"{name}: option preset '{preset_name}' conflicts with existing definition.")
            else:
                presets.setdefault(preset_name, options)

        for entry in quest["steps"]:
            if not isinstance(entry, Mapping) or not entry.get("id"):
                continue
            if is_patch_id(entry["id"]):
                patches.append((name, step_to_patch(entry)))
            else:
                steps.append(dict(entry))
        report.files.append((name, str(quest.get("name") or name), len(quest["steps"])))

    regular_ids = {step["id"] for step in steps}
    for name, patch in patches:
        target = patch["target"]
        if target.startswith(PATCH_PREFIX):
            report.errors.append(f"Patch in {name} targets another patch: {PATCH_PREFIX}{target}")
        elif target not in regular_ids:
            report.warnings.append(f"Patch in {name} targets non-existent step: {target}")

    seen: set = set()
    for step in steps:
        if step["id"] in seen and step["id"] not in report.shared_ids:
            report.shared_ids.append(step["id"])
        seen.add(step["id"])

    payload: Dict[str, Any] = {"config": config, "steps": steps}
    if locations:
        payload["locations"] = locations
    if presets:
        payload["option_presets"] = presets
    if patches:
        payload["patches"] = [patch for _, patch in patches]
    return payload, report


def load_content(path: Path | str) -> Content:
    """Load a consolidated payload file or a quest directory."""
    path = Path(path)
    if path.is_dir():
        payload, report = merge_quest_files(path)
        if report.errors:
            raise ContentError(report.errors, heading=f"Could not merge {path}")
        for warning in report.warnings:
            logger.warning("%s", warning)
        return build_content(payload, source=str(path))
    try:
        payload = load_json(path)
    except json.JSONDecodeError as exc:
        raise ContentError([f"{path}: invalid JSON ({exc})."]) from exc
    return build_content(payload, source=path.name)
