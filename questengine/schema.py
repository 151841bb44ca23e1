"""Structural validation for quest content payloads."""

from __future__ import annotations

import json
from typing import Any, List, Mapping, Sequence, Set, Tuple

from .tags import BASE_OPERATORS, parse_tag

PATCH_PREFIX = "@patch:"

TEXT_MODIFICATION_KEYS = ("prepend", "append", "replace")


def path(*parts: object) -> str:
    path_str = ""
    for part in parts:
        if isinstance(part, int):
            path_str = f"{path_str}[{part}]"
            continue
        if not isinstance(part, str):
            part = str(part)
        if part.isidentifier():
            path_str = f"{path_str}.{part}" if path_str else part
        else:
            path_str = f'{path_str}[{json.dumps(part)}]'
    return path_str


def format_validation_message(path_str: str, context: str, message: str) -> str:
    if context:
        return f"{path_str}: {context}: {message}"
    return f"{path_str}: {message}"


def is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def is_str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def is_patch_id(step_id: Any) -> bool:
    return isinstance(step_id, str) and step_id.startswith(PATCH_PREFIX)


def patch_target_of(step_id: str) -> str:
    return step_id[len(PATCH_PREFIX):] if is_patch_id(step_id) else step_id


def is_presets_entry(entry: Any) -> bool:
    return isinstance(entry, Mapping) and "option_presets" in entry and "id" not in entry


class ValidationContext:
    """Accumulates errors (content cannot load) and warnings (it can)."""

    def __init__(self) -> None:
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def add(self, context: str, path_str: str, message: str) -> None:
        self.errors.append(format_validation_message(path_str, context, message))

    def warn(self, context: str, path_str: str, message: str) -> None:
        self.warnings.append(format_validation_message(path_str, context, message))

    def ok(self) -> bool:
        return not self.errors


def _validate_tags(
    tags: Any,
    context: str,
    path_parts: Sequence[object],
    ctx: ValidationContext,
    *,
    allow_base: bool,
) -> None:
    if tags is None:
        return
    if not is_str_list(tags):
        ctx.add(context, path(*path_parts), "'tags' must be a list of strings.")
        return
    for index, raw in enumerate(tags):
        parsed = parse_tag(raw)
        if not parsed.name:
            ctx.add(context, path(*path_parts, index), f"tag token '{raw}' has no tag name.")
        elif parsed.operator in BASE_OPERATORS and not allow_base:
            ctx.add(
                context,
                path(*path_parts, index),
                f"base-step condition '{raw}' is only valid on patches.",
            )


def _validate_vars(vars_block: Any, context: str, path_parts: Sequence[object], ctx: ValidationContext) -> None:
    if vars_block is None:
        return
    if not isinstance(vars_block, Mapping):
        ctx.add(context, path(*path_parts), "'vars' must be an object mapping names to value lists.")
        return
    for name, options in vars_block.items():
        var_path = (*path_parts, name)
        if not is_non_empty_str(name):
            ctx.add(context, path(*path_parts), "variable names must be non-empty strings.")
            continue
        if options is None or isinstance(options, str):
            continue
        if not isinstance(options, list):
            ctx.add(context, path(*var_path), "variable values must be a list, a string or null.")
            continue
        for index, choice in enumerate(options):
            if isinstance(choice, str):
                continue
            if isinstance(choice, Mapping) and all(
                isinstance(key, str) and isinstance(value, str) for key, value in choice.items()
            ):
                continue
            ctx.add(
                context,
                path(*var_path, index),
                "variable choices must be strings or objects of string fields.",
            )


def _validate_option(
    option: Any,
    context: str,
    path_parts: Sequence[object],
    ctx: ValidationContext,
    targets: List[Tuple[str, str, str]],
) -> None:
    if isinstance(option, str):
        if not option.strip():
            ctx.add(context, path(*path_parts), "option shorthand must be a non-empty string.")
            return
        label, sep, target = option.partition("::")
        if sep and target:
            targets.append((path(*path_parts), context, target))
        return
    if not isinstance(option, Mapping):
        ctx.add(context, path(*path_parts), "option must be a string or an object.")
        return

    if not isinstance(option.get("label"), str):
        ctx.add(context, path(*path_parts, "label"), "option requires a string 'label'.")
    _validate_tags(option.get("tags"), context, (*path_parts, "tags"), ctx, allow_base=False)

    pass_target = option.get("pass")
    if pass_target is not None and not is_non_empty_str(pass_target):
        ctx.add(context, path(*path_parts, "pass"), "'pass' must be a step id or null.")
    elif pass_target is not None:
        targets.append((path(*path_parts, "pass"), context, pass_target))

    fail_target = option.get("fail")
    if fail_target is not None and not is_non_empty_str(fail_target):
        ctx.add(context, path(*path_parts, "fail"), "'fail' must be a step id.")
    elif fail_target is not None:
        targets.append((path(*path_parts, "fail"), context, fail_target))

    skill = option.get("skill")
    if skill is not None:
        skills = [skill] if isinstance(skill, str) else skill
        if not is_str_list(skills) or not skills or not all(s.strip() for s in skills):
            ctx.add(context, path(*path_parts, "skill"), "'skill' must be a name or a list of names.")
        dc = option.get("dc")
        if not isinstance(dc, int) or isinstance(dc, bool):
            ctx.add(context, path(*path_parts, "dc"), "skill checks require an integer 'dc'.")
        if fail_target is None:
            ctx.add(context, path(*path_parts, "fail"), "skill checks require a 'fail' target.")
    elif option.get("dc") is not None:
        ctx.warn(context, path(*path_parts, "dc"), "'dc' has no effect without a 'skill'.")

    hidden = option.get("hidden")
    if hidden is not None and not isinstance(hidden, bool):
        ctx.add(context, path(*path_parts, "hidden"), "'hidden' must be a boolean.")


def _validate_options(
    options: Any,
    context: str,
    path_parts: Sequence[object],
    presets: Mapping[str, Any],
    ctx: ValidationContext,
    targets: List[Tuple[str, str, str]],
) -> None:
    if options is None:
        return
    if isinstance(options, str):
        if options not in presets:
            ctx.add(context, path(*path_parts), f"unknown option preset '{options}'.")
        return
    if not isinstance(options, list):
        ctx.add(context, path(*path_parts), "'options' must be a list or a preset name.")
        return
    for index, option in enumerate(options):
        _validate_option(option, f"{context}, option {index + 1}", (*path_parts, index), ctx, targets)


def _validate_text_modification(text: Any, context: str, path_parts: Sequence[object], ctx: ValidationContext) -> None:
    if text is None:
        return
    if not isinstance(text, Mapping):
        ctx.add(context, path(*path_parts), "patch 'text' must be an object with prepend/append/replace.")
        return
    for key, value in text.items():
        if key not in TEXT_MODIFICATION_KEYS:
            ctx.add(context, path(*path_parts, key), f"unsupported text modification '{key}'.")
        elif not isinstance(value, str):
            ctx.add(context, path(*path_parts, key), f"'{key}' must be a string.")


def _validate_patch(
    patch: Mapping[str, Any],
    target: Any,
    context: str,
    path_parts: Sequence[object],
    presets: Mapping[str, Any],
    ctx: ValidationContext,
    targets: List[Tuple[str, str, str]],
    patch_targets: List[Tuple[str, str, str]],
) -> None:
    if not is_non_empty_str(target):
        ctx.add(context, path(*path_parts), "patch is missing a target step id.")
        return
    if is_patch_id(target):
        ctx.add(context, path(*path_parts), f"patch cannot target another patch: {target}.")
        return
    patch_targets.append((path(*path_parts), context, target))
    _validate_tags(patch.get("tags"), context, (*path_parts[:-1], "tags"), ctx, allow_base=True)
    _validate_text_modification(patch.get("text"), context, (*path_parts[:-1], "text"), ctx)
    _validate_options(patch.get("options"), context, (*path_parts[:-1], "options"), presets, ctx, targets)
    _validate_vars(patch.get("vars"), context, (*path_parts[:-1], "vars"), ctx)


def collect_presets(payload: Mapping[str, Any]) -> dict:
    presets = {}
    top_level = payload.get("option_presets")
    if isinstance(top_level, Mapping):
        presets.update(top_level)
    steps = payload.get("steps")
    if isinstance(steps, list):
        for entry in steps:
            if is_presets_entry(entry) and isinstance(entry.get("option_presets"), Mapping):
                presets.update(entry["option_presets"])
    return presets


def validate_content(payload: Any) -> Tuple[List[str], List[str]]:
    """Return ``(errors, warnings)`` for a raw content payload."""
    ctx = ValidationContext()
    if not isinstance(payload, Mapping):
        ctx.add("Content", path("content"), "content data must be an object.")
        return ctx.errors, ctx.warnings

    steps = payload.get("steps")
    if not isinstance(steps, list):
        ctx.add("Content", path("steps"), "must include a 'steps' list.")
        steps = []

    config = payload.get("config")
    if config is not None and not isinstance(config, Mapping):
        ctx.add("Content", path("config"), "'config' must be an object.")
    locations = payload.get("locations")
    if locations is not None and not isinstance(locations, Mapping):
        ctx.add("Content", path("locations"), "'locations' must map coordinates to names.")

    presets = collect_presets(payload)
    for name, options in presets.items():
        if not isinstance(options, list):
            ctx.add("Option presets", path("option_presets", name), "preset must be a list of options.")
            continue
        for index, option in enumerate(options):
            _validate_option(
                option, f"Preset '{name}' option {index + 1}", ("option_presets", name, index), ctx, []
            )

    step_ids: Set[str] = set()
    exact_ids: Set[str] = set()
    targets: List[Tuple[str, str, str]] = []
    patch_targets: List[Tuple[str, str, str]] = []

    for index, step in enumerate(steps):
        if is_presets_entry(step):
            continue
        context = f"Step entry {index + 1}"
        if not isinstance(step, Mapping):
            ctx.add(context, path("steps", index), "must be an object.")
            continue
        step_id = step.get("id")
        if not is_non_empty_str(step_id):
            ctx.add(context, path("steps", index, "id"), "is missing a valid 'id'.")
            continue
        if is_patch_id(step_id):
            _validate_patch(
                step,
                patch_target_of(step_id),
                f"Patch '{step_id}'",
                ("steps", index, "id"),
                presets,
                ctx,
                targets,
                patch_targets,
            )
            continue

        context = f"Step '{step_id}'"
        step_ids.add(step_id.lower())
        exact_ids.add(step_id)
        if not isinstance(step.get("text"), str):
            ctx.add(context, path("steps", index, "text"), "requires a string 'text'.")
        log = step.get("log")
        if log is not None and not isinstance(log, str):
            ctx.add(context, path("steps", index, "log"), "'log' must be a string.")
        _validate_tags(step.get("tags"), context, ("steps", index, "tags"), ctx, allow_base=False)
        _validate_vars(step.get("vars"), context, ("steps", index, "vars"), ctx)
        _validate_options(step.get("options"), context, ("steps", index, "options"), presets, ctx, targets)

    patches = payload.get("patches")
    if patches is not None:
        if not isinstance(patches, list):
            ctx.add("Content", path("patches"), "'patches' must be a list.")
            patches = []
        for index, patch in enumerate(patches):
            context = f"Patch entry {index + 1}"
            if not isinstance(patch, Mapping):
                ctx.add(context, path("patches", index), "must be an object.")
                continue
            _validate_patch(
                patch,
                patch.get("target"),
                context,
                ("patches", index, "target"),
                presets,
                ctx,
                targets,
                patch_targets,
            )

    for path_str, context, target in targets:
        if target.lower() not in step_ids:
            ctx.warn(context, path_str, f"targets unknown step '{target}'.")
    for path_str, context, target in patch_targets:
        if target in exact_ids:
            continue
        if target.lower() in step_ids:
            # patches match their target exactly
            ctx.warn(context, path_str, f"patch target '{target}' differs from the step id only by case.")
        else:
            ctx.warn(context, path_str, f"patch targets non-existent step '{target}'.")

    return ctx.errors, ctx.warnings
