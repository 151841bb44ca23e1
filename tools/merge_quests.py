#!/usr/bin/env python3
"""Combine a directory of quest files into a single steps payload."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_QUESTS_DIR = REPO_ROOT / "quests"
DEFAULT_OUTPUT_PATH = REPO_ROOT / "static" / "steps.json"

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from questengine.content import merge_quest_files


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Merge quest files into a single steps file.")
    parser.add_argument(
        "--quests",
        type=Path,
        default=DEFAULT_QUESTS_DIR,
        help="Directory containing quest JSON files.",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=DEFAULT_OUTPUT_PATH,
        help="Path for the merged output.",
    )
    return parser.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    quests_dir: Path = args.quests.resolve()
    output_path: Path = args.output.resolve()

    if not quests_dir.is_dir():
        print(f"Quest directory {quests_dir} does not exist.")
        sys.exit(1)

    payload, report = merge_quest_files(quests_dir)
    for filename, name, count in report.files:
        print(f"  {filename}: {name} ({count} steps)")
    for warning in report.warnings:
        print(f"Warning: {warning}")
    if report.shared_ids:
        print(f"Step ids shared across variants: {', '.join(report.shared_ids)}")

    if report.errors:
        print("Merge aborted due to errors:")
        for err in report.errors:
            print(f" - {err}")
        sys.exit(1)

    output_path.parent.mkdir(parents=True, exist_ok=True)
    with output_path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, ensure_ascii=False)
        handle.write("\n")

    patch_count = len(payload.get("patches", []))
    print(
        f"Merged {len(report.files)} quest file(s) into {output_path}: "
        f"{len(payload['steps'])} steps, {patch_count} patches."
    )


if __name__ == "__main__":
    main()
