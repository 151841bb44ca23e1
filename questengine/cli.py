"""Play quest content in the terminal.

Usage: questengine [quests/ | steps.json] [--seed N] [--saves DIR] [--slot NAME]
"""

from __future__ import annotations

import argparse
import logging
import random
import textwrap
from typing import Callable, List, Optional

from .content import ContentError, load_content
from .player import PlayerState
from .save_manager import SaveError, SaveManager
from .session import (
    CHARACTER_CREATION,
    DISPLAY_STEP,
    LEVEL_UP,
    NAVIGATION,
    SKILL_CHECK_RESULT,
    SKILL_CHECK_ROLL,
    GameSession,
    Outcome,
    StepView,
)
from .settings import STAT_NAMES

DEFAULT_CONTENT_PATH = "quests"
LINE_WIDTH = 80
LOG_PREVIEW = 5

InputFunc = Callable[[str], str]
PrintFunc = Callable[..., None]


class QuitGame(Exception):
    pass


def separator(primary: bool = True) -> str:
    return ("=" if primary else "-") * LINE_WIDTH


def read(input_func: InputFunc, prompt: str) -> str:
    try:
        return input_func(prompt).strip()
    except EOFError as exc:
        raise QuitGame() from exc


def show_view(view: StepView, player: PlayerState, emit: PrintFunc) -> None:
    emit("\n" + separator())
    for paragraph in view.text.split("\n"):
        if paragraph.strip():
            for line in textwrap.wrap(paragraph, width=LINE_WIDTH):
                emit(line)
        else:
            emit("")
    emit(separator(primary=False))
    emit(player.summary())
    emit(separator(primary=False))
    for number, option in enumerate(view.options, start=1):
        if option.available:
            emit(f"  {number}. {option.label}")
        else:
            emit(f"  {number}. {option.label} (needs {', '.join(option.missing)})")
    if not view.options:
        emit("  (Enter to leave)")


def show_outcome(outcome: Outcome, player: PlayerState, emit: PrintFunc) -> None:
    if outcome.message:
        emit(f"[!] {outcome.message}")
    if outcome.mutations is not None:
        for tag in outcome.mutations.added:
            emit(f"[+] {tag}")
        for tag in outcome.mutations.removed:
            emit(f"[-] {tag}")
    if outcome.view is not None:
        show_view(outcome.view, player, emit)
    if outcome.result is not None:
        result = outcome.result
        bonuses = " + ".join(f"{b.source} {b.value}" for b in result.bonuses) or "0"
        verdict = "Success!" if result.success else "Failure."
        emit(f"Rolled {result.roll} + ({bonuses}) = {result.total} vs DC {result.dc}. {verdict}")


def show_status(session: GameSession, emit: PrintFunc) -> None:
    player = session.player
    config = session.config
    emit(f"Level {player.level(config)} ({player.xp} XP)")
    for stat in STAT_NAMES:
        emit(f"  {stat.title()}: {player.effective_stat(stat, config)}")
    items = ", ".join(f"{item} x{count}" if count > 1 else item for item, count in player.inventory())
    emit("Items:", items or "-")
    emit("Traits:", ", ".join(player.traits()) or "-")
    emit("Status:", ", ".join(player.statuses()) or "-")
    emit("Allies:", ", ".join(player.allies()) or "-")
    emit("Completed:", ", ".join(player.completed_quests()) or "-")


def show_log(player: PlayerState, emit: PrintFunc) -> None:
    if not player.log:
        emit("The quest log is empty.")
        return
    for entry in player.log[:LOG_PREVIEW]:
        emit(f"  - {entry}")


def create_character(session: GameSession, input_func: InputFunc, emit: PrintFunc) -> None:
    config = session.config
    name = read(input_func, "Name your character: ") or "Traveler"
    stats = dict(config.starting_stats)
    points = config.starting_points
    while points > 0:
        emit(" ".join(f"{s.title()}:{stats[s]}" for s in STAT_NAMES) + f" | {points} point(s) left")
        choice = read(input_func, "Raise which stat? ").lower()
        if choice not in STAT_NAMES:
            emit(f"Pick one of: {', '.join(STAT_NAMES)}.")
            continue
        stats[choice] += 1
        points -= 1
    session.start_new_game(name, stats)


def level_up(session: GameSession, input_func: InputFunc, emit: PrintFunc) -> None:
    emit(f"*** Level {session.player.level(session.config)}! ***")
    while True:
        choice = read(input_func, f"Improve which stat ({'/'.join(STAT_NAMES)})? ").lower()
        if choice in STAT_NAMES:
            session.increase_stat(choice)
            return
        emit("Pick a valid stat.")


def handle_common(choice: str, session: GameSession, emit: PrintFunc) -> bool:
    if choice == "q":
        raise QuitGame()
    if choice == "i":
        show_status(session, emit)
        return True
    if choice == "l":
        show_log(session.player, emit)
        return True
    return False


def play(session: GameSession, input_func: InputFunc = input, emit: PrintFunc = print) -> None:
    """Drive ``session`` until the player quits or input runs out."""
    try:
        if session.phase == CHARACTER_CREATION:
            create_character(session, input_func, emit)
        while True:
            phase = session.phase
            if phase == LEVEL_UP:
                level_up(session, input_func, emit)
                if session.current is not None:
                    show_view(session.current, session.player, emit)
                continue
            if phase == NAVIGATION:
                choice = read(input_func, "\nWhere to? (location, I=status, L=log, Q=quit) > ")
                if not choice or handle_common(choice.lower(), session, emit):
                    continue
                location = session.resolve_location(choice)
                if location != choice.strip().upper():
                    emit(f"[{location}]")
                show_outcome(session.navigate(choice), session.player, emit)
                continue
            if phase == DISPLAY_STEP:
                choice = read(input_func, "> ").lower()
                if not choice and session.current is not None and not session.current.options:
                    session.leave()
                    continue
                if handle_common(choice, session, emit):
                    continue
                if not choice.isdigit():
                    emit("Enter a number or I/L/Q.")
                    continue
                show_outcome(session.select_option(int(choice) - 1), session.player, emit)
                continue
            if phase == SKILL_CHECK_ROLL:
                read(input_func, "Press Enter to roll the die.")
                show_outcome(session.roll_skill_check(), session.player, emit)
                continue
            if phase == SKILL_CHECK_RESULT:
                read(input_func, "Press Enter to continue.")
                show_outcome(session.continue_after_skill_check(), session.player, emit)
                continue
            raise RuntimeError(f"unknown phase {phase!r}")
    except QuitGame:
        emit("\nFarewell.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Play tag-driven quest content.")
    parser.add_argument(
        "content",
        nargs="?",
        default=DEFAULT_CONTENT_PATH,
        help="Quest directory or consolidated steps JSON file.",
    )
    parser.add_argument("--seed", type=int, help="Seed for step tie-breaks, variables and dice.")
    parser.add_argument("--saves", default="saves", help="Directory holding save slots.")
    parser.add_argument("--slot", default=SaveManager.AUTOSAVE_SLOT, help="Save slot to resume and write.")
    parser.add_argument("--new", action="store_true", help="Ignore any existing save and start over.")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log engine decisions.")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        content = load_content(args.content)
    except (ContentError, OSError) as exc:
        print(exc)
        return 1

    saves = SaveManager(args.saves, config=content.config)
    player = None
    if not args.new and saves.has_slot(args.slot):
        player = saves.load(args.slot)

    def persist(state: PlayerState) -> None:
        try:
            saves.save(args.slot, state, quiet=True)
        except SaveError as exc:
            print(f"[!] {exc}")

    rng = random.Random(args.seed)
    session = GameSession(content, player, rng=rng, on_change=persist)
    play(session)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
