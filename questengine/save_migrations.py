"""Save migration registry."""

from __future__ import annotations

import copy
from typing import Callable, Dict

from .settings import STAT_NAMES


class SaveMigrationError(Exception):
    """Raised when a save cannot be migrated to the latest schema."""


Migration = Callable[[Dict], Dict]


def _player_from_legacy(payload: Dict) -> Dict:
    """Flat browser saves kept the sheet under ``character`` and the tags
    under ``character.metadata``."""
    character = payload.get("character")
    if not isinstance(character, dict):
        raise SaveMigrationError("Missing character block for legacy save.")
    return {
        "tags": list(character.get("metadata") or []),
        "variables": dict(payload.get("questVars") or {}),
        "log": list(payload.get("questLog") or []),
        "stats": {stat: character.get(stat, 0) for stat in STAT_NAMES},
        "xp": character.get("xp", 0),
        "steps_completed": character.get("stepsCompleted", 0),
        "current_step_id": payload.get("currentStepId"),
    }


def _migrate_v0_to_v1(payload: Dict) -> Dict:
    state = payload.get("state")
    if not isinstance(state, dict):
        state = {"player": _player_from_legacy(payload)}

    metadata = payload.get("metadata")
    if not isinstance(metadata, dict):
        metadata = {}

    player = state.get("player")
    if not isinstance(player, dict):
        player = {}
    variables = player.get("variables")
    if not isinstance(variables, dict):
        variables = {}

    return {
        "version": 1,
        "metadata": {
            "schema": "save_v1",
            "version": 1,
            "save_slot": metadata.get("save_slot") or payload.get("save_slot"),
            "saved_at": metadata.get("saved_at") or payload.get("saved_at"),
            "player_name": metadata.get("player_name", variables.get("character_name")),
            "current_step_id": metadata.get("current_step_id", player.get("current_step_id")),
        },
        "state": state,
    }


MIGRATIONS: Dict[int, Migration] = {
    0: _migrate_v0_to_v1,
}


def migrate_save_payload(payload: Dict, target_version: int) -> Dict:
    if not isinstance(payload, dict):
        raise SaveMigrationError("Save payload was not an object.")

    version = payload.get("version", 0)
    if version is None:
        version = 0
    if not isinstance(version, int):
        raise SaveMigrationError("Save version missing or invalid.")
    if version > target_version:
        raise SaveMigrationError(
            f"Save schema {version} is newer than supported {target_version}."
        )

    current = copy.deepcopy(payload)
    while version < target_version:
        migrator = MIGRATIONS.get(version)
        if migrator is None:
            raise SaveMigrationError(
                f"No migration available for save schema {version}."
            )
        current = migrator(current)
        version = current.get("version", version + 1)
        if not isinstance(version, int):
            raise SaveMigrationError("Migration produced an invalid schema version.")

    return current
