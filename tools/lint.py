#!/usr/bin/env python3
"""Authoring lint checks for quest content payloads."""

from __future__ import annotations

import argparse
import json
import sys
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

REPO_ROOT = Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from questengine.content import expand_options, merge_quest_files
from questengine.render import extract_variables
from questengine.schema import (
    PATCH_PREFIX,
    collect_presets,
    is_patch_id,
    is_presets_entry,
    patch_target_of,
)
from questengine.tags import FORBID, REQUIRE, REQUIRE_EXPLICIT, parse_tag

SEVERITY_ORDER = {"error": 0, "warning": 1, "info": 2}

# Set by the session rather than by any step.
BUILTIN_VARIABLES = frozenset({"character_name"})


@dataclass
class LintResult:
    severity: str
    code: str
    message: str
    step_id: Optional[str] = None
    step_index: Optional[int] = None
    option_index: Optional[int] = None
    related_step_id: Optional[str] = None

    def format(self) -> str:
        where = f"steps[{self.step_index}]" if self.step_index is not None else "content"
        if self.option_index is not None:
            where += f".options[{self.option_index}]"
        return f"{self.severity.upper()} {self.code}: {where}: {self.message}"


def _entries(payload: Mapping[str, Any]) -> List[Tuple[int, Dict[str, Any]]]:
    """Steps (patches included) with their index; consolidated patch records
    are appended as ``@patch:`` steps."""
    entries: List[Tuple[int, Dict[str, Any]]] = []
    steps = payload.get("steps") or []
    for index, step in enumerate(steps):
        if isinstance(step, Mapping) and not is_presets_entry(step) and isinstance(step.get("id"), str):
            entries.append((index, dict(step)))
    offset = len(steps)
    for index, patch in enumerate(payload.get("patches") or []):
        if isinstance(patch, Mapping):
            entry = dict(patch)
            entry["id"] = f"{PATCH_PREFIX}{patch.get('target') or ''}"
            entries.append((offset + index, entry))
    return entries


def _options(step: Mapping[str, Any], presets: Mapping[str, Any]):
    try:
        return expand_options(step.get("options"), presets)
    except TypeError:
        return ()


def _is_location(step_id: str, location_names: Set[str]) -> bool:
    return step_id in location_names or "_" not in step_id


def check_broken_targets(entries, step_ids: Set[str], presets) -> List[LintResult]:
    results = []
    for index, step in entries:
        for opt_index, option in enumerate(_options(step, presets)):
            if option.pass_target and option.pass_target not in step_ids:
                results.append(LintResult(
                    "error", "broken_pass_target",
                    f'Option "{option.label}" references non-existent step: {option.pass_target}',
                    step["id"], index, opt_index,
                ))
            if option.fail_target and option.fail_target not in step_ids:
                results.append(LintResult(
                    "error", "broken_fail_target",
                    f'Option "{option.label}" fail target references non-existent step: {option.fail_target}',
                    step["id"], index, opt_index,
                ))
    return results


def _used_variables(step: Mapping[str, Any], presets) -> List[str]:
    used = extract_variables(step.get("text") if isinstance(step.get("text"), str) else "")
    if isinstance(step.get("log"), str):
        used += extract_variables(step["log"])
    for option in _options(step, presets):
        used += extract_variables(option.label)
    return used


def _declared(step: Mapping[str, Any]) -> Set[str]:
    vars_block = step.get("vars")
    return set(vars_block) if isinstance(vars_block, Mapping) else set()


def check_undefined_variables(entries, presets) -> List[LintResult]:
    results = []
    first_definition: Dict[str, Tuple[int, str]] = {}
    for index, step in entries:
        for name in _declared(step):
            first_definition.setdefault(name, (index, step["id"]))

    for index, step in entries:
        defined = _declared(step)
        seen: Set[str] = set()
        for name in _used_variables(step, presets):
            base = name.split(".")[0]
            if base in seen:
                continue
            seen.add(base)
            if name in defined or base in defined or base in BUILTIN_VARIABLES:
                continue
            other = first_definition.get(base)
            if other is not None and other[0] != index:
                results.append(LintResult(
                    "info", "variable_from_other_step",
                    f'Variable "{{{{{name}}}}}" is defined in step "{other[1]}"',
                    step["id"], index, related_step_id=other[1],
                ))
            else:
                results.append(LintResult(
                    "warning", "undefined_variable",
                    f'Variable "{{{{{name}}}}}" is used but not defined anywhere',
                    step["id"], index,
                ))
    return results


def check_unused_variables(entries, presets) -> List[LintResult]:
    results = []
    for index, step in entries:
        defined = _declared(step)
        if not defined:
            continue
        used = {name.split(".")[0] for name in _used_variables(step, presets)}
        for name in sorted(defined - used):
            results.append(LintResult(
                "info", "unused_variable",
                f'Variable "{name}" is defined but never used',
                step["id"], index,
            ))
    return results


def check_orphan_steps(entries, location_names: Set[str], presets) -> List[LintResult]:
    referenced: Set[str] = set()
    for _, step in entries:
        for option in _options(step, presets):
            if option.pass_target:
                referenced.add(option.pass_target)
            if option.fail_target:
                referenced.add(option.fail_target)

    results = []
    for index, step in entries:
        step_id = step["id"]
        if is_patch_id(step_id) or _is_location(step_id, location_names):
            continue
        if step_id not in referenced:
            results.append(LintResult(
                "warning", "orphan_step",
                f'Internal step "{step_id}" is never referenced by any option',
                step_id, index,
            ))
    return results


def _is_quest_gate(raw: str) -> bool:
    parsed = parse_tag(raw)
    if parsed.operator == FORBID and parsed.name == "quest":
        return True
    return parsed.operator in (REQUIRE, REQUIRE_EXPLICIT) and parsed.name.startswith("q:")


def check_missing_quest_gate(entries, location_names: Set[str]) -> List[LintResult]:
    results = []
    for index, step in entries:
        step_id = step["id"]
        if is_patch_id(step_id) or not _is_location(step_id, location_names):
            continue
        tags = [t for t in step.get("tags") or [] if isinstance(t, str)]
        if not any(_is_quest_gate(tag) for tag in tags):
            results.append(LintResult(
                "warning", "missing_quest_gate",
                f'Location step "{step_id}" lacks quest gate (add !quest or @q:questname)',
                step_id, index,
            ))
    return results


def levenshtein(a: str, b: str) -> int:
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def check_tag_typos(entries) -> List[LintResult]:
    """Tags used once that sit one or two edits away from a common tag."""
    counts: Counter = Counter()
    first_step: Dict[str, Tuple[int, str]] = {}
    for index, step in entries:
        for raw in step.get("tags") or []:
            if not isinstance(raw, str):
                continue
            name = parse_tag(raw).name
            counts[name] += 1
            first_step.setdefault(name, (index, step["id"]))

    results = []
    for tag, count in counts.items():
        if count > 1:
            continue
        for other, other_count in counts.items():
            if other == tag or other_count <= 1:
                continue
            distance = levenshtein(tag, other)
            if distance == 1 or (distance == 2 and max(len(tag), len(other)) > 6):
                index, step_id = first_step[tag]
                results.append(LintResult(
                    "info", "tag_typo_candidate",
                    f'Tag "{tag}" is similar to "{other}" - possible typo?',
                    step_id, index,
                ))
                break
    return results


def check_patch_targets(entries, step_ids: Set[str]) -> List[LintResult]:
    results = []
    for index, step in entries:
        if not is_patch_id(step["id"]):
            continue
        target = patch_target_of(step["id"])
        if not target:
            results.append(LintResult(
                "error", "patch_missing_target", "Patch is missing a target step ID", step["id"], index,
            ))
            continue
        if is_patch_id(target):
            results.append(LintResult(
                "error", "patch_targets_patch",
                f"Patch cannot target another patch: {target}", step["id"], index,
            ))
        elif target not in step_ids:
            results.append(LintResult(
                "warning", "patch_unknown_target",
                f"Patch targets non-existent step: {target}", step["id"], index,
            ))
    return results


def lint_content(payload: Mapping[str, Any], locations: Optional[Mapping[str, str]] = None) -> List[LintResult]:
    """Run every check; results are ordered error, warning, info."""
    if not isinstance(payload, Mapping):
        return [LintResult("error", "invalid_payload", "Content must be an object.")]
    entries = _entries(payload)
    presets = collect_presets(payload)
    if locations is None:
        locations = payload.get("locations") if isinstance(payload.get("locations"), Mapping) else {}

    step_ids = {step["id"] for _, step in entries if not is_patch_id(step["id"])}
    location_names = set(locations.values()) | set(locations.keys())

    results: List[LintResult] = []
    results += check_broken_targets(entries, step_ids, presets)
    results += check_undefined_variables(entries, presets)
    results += check_unused_variables(entries, presets)
    results += check_orphan_steps(entries, location_names, presets)
    results += check_missing_quest_gate(entries, location_names)
    results += check_tag_typos(entries)
    results += check_patch_targets(entries, step_ids)
    results.sort(key=lambda result: SEVERITY_ORDER.get(result.severity, 99))
    return results


def load_payload(path: Path) -> Dict[str, Any]:
    if path.is_dir():
        payload, report = merge_quest_files(path)
        if report.errors:
            print("Merge failed:")
            for err in report.errors:
                print(f" - {err}")
            sys.exit(1)
        return payload
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def print_results(results: Iterable[LintResult]) -> None:
    for result in results:
        print(f" - {result.format()}")


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Lint quest content.")
    parser.add_argument("content", nargs="?", default=str(REPO_ROOT / "quests"))
    return parser.parse_args(argv)


def main(argv: Sequence[str]) -> None:
    args = parse_args(argv[1:])
    results = lint_content(load_payload(Path(args.content)))
    if not results:
        print("No lint findings.")
        return
    print_results(results)
    if any(result.severity == "error" for result in results):
        sys.exit(1)


if __name__ == "__main__":
    main(sys.argv)
