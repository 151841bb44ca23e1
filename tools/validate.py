#!/usr/bin/env python3
"""Validate quest content for schema errors and common authoring mistakes."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, Sequence

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONTENT = REPO_ROOT / "quests"

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from questengine.content import merge_quest_files
from questengine.schema import validate_content
from tools.lint import lint_content


def load_json(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate quest content.")
    parser.add_argument(
        "content_path",
        nargs="?",
        default=str(DEFAULT_CONTENT),
        help="Quest directory or consolidated steps JSON file.",
    )
    parser.add_argument("--no-lint", action="store_true", help="Only run the schema checks.")
    return parser.parse_args(argv)


def main(argv: Sequence[str]) -> None:
    args = parse_args(argv[1:])
    content_path = Path(args.content_path).resolve()

    if content_path.is_dir():
        payload, report = merge_quest_files(content_path)
        if report.errors:
            print("Merge failed:")
            for err in report.errors:
                print(f" - {err}")
            sys.exit(1)
    else:
        try:
            payload = load_json(content_path)
        except json.JSONDecodeError as exc:
            print(f"Failed to parse JSON from {content_path}: {exc}")
            sys.exit(1)

    errors, warnings = validate_content(payload)
    if errors:
        print("Validation failed (path: message):")
        for err in errors:
            print(f" - {err}")
        sys.exit(1)

    if warnings:
        print("Warnings (path: message):")
        for warning in warnings:
            print(f" - {warning}")

    if not args.no_lint:
        findings = lint_content(payload)
        if findings:
            print("Lint findings:")
            for finding in findings:
                print(f" - {finding.format()}")
        if any(finding.severity == "error" for finding in findings):
            sys.exit(1)

    print(f"Validation passed for {content_path}.")


if __name__ == "__main__":
    main(sys.argv)
