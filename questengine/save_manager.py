"""Player state persistence: slots, backups, migrations."""

from __future__ import annotations

import json
import logging
import shutil
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .player import PlayerState
from .save_migrations import SaveMigrationError, migrate_save_payload
from .settings import GameConfig

logger = logging.getLogger(__name__)


class SaveError(Exception):
    """Base class for save related failures."""


class SaveCorruptError(SaveError):
    """Raised when a save file cannot be parsed or validated."""


@dataclass
class SlotMetadata:
    slot: str
    saved_at: Optional[str] = None
    player_name: Optional[str] = None
    current_step_id: Optional[str] = None


class SaveManager:
    """Save, load and autosave player state with a one-deep backup per slot.

    A slot that cannot be read or migrated falls back to its backup; if that
    fails too, :meth:`load_or_new` hands back a fresh player state.
    """

    SCHEMA_VERSION = 1
    SAVE_FILENAME = "save_v1.json"
    BACKUP_FILENAME = "save_v1.bak"
    LEGACY_SAVE_FILENAMES = ("save.json",)
    AUTOSAVE_SLOT = "autosave"
    QUICK_SLOT = "quick"
    _VALID_SLOT_CHARS = set(string.ascii_lowercase + string.digits + "-_")

    def __init__(
        self,
        base_path: Path | str = "saves",
        *,
        config: GameConfig | None = None,
        print_func: Callable[[str], None] = print,
    ) -> None:
        self.base_path = Path(base_path)
        self.config = config or GameConfig()
        self.print = print_func
        self.base_path.mkdir(parents=True, exist_ok=True)

    # ---------- Public API ----------
    def save(self, slot: str, player: PlayerState, *, label: Optional[str] = None, quiet: bool = False) -> Path:
        normalized = self._normalize_slot(slot)
        payload = self._build_payload(normalized, player)
        path = self._slot_path(normalized)
        path.mkdir(parents=True, exist_ok=True)
        save_path = path / self.SAVE_FILENAME
        backup_path = path / self.BACKUP_FILENAME
        self._write_payload(save_path, backup_path, payload, make_backup=True)

        if not quiet:
            tag = label or "Saved"
            self.print(f"[{tag}] Slot '{normalized}' written to {save_path}.")
        return save_path

    def load(self, slot: str, *, prefer_backup: bool = False) -> Optional[PlayerState]:
        """Return the stored player state, or None when nothing usable exists."""
        normalized = self._normalize_slot(slot)
        path = self._slot_path(normalized)
        save_path = path / self.SAVE_FILENAME
        backup_path = path / self.BACKUP_FILENAME
        legacy_path = self._legacy_save_path(path)

        target_path = backup_path if prefer_backup else save_path
        if not target_path.exists():
            if save_path.exists():
                target_path = save_path
            elif legacy_path is not None:
                target_path = legacy_path
            else:
                self.print(f"[!] No save found for slot '{normalized}'.")
                return None

        try:
            payload = self._read_payload(target_path)
        except (SaveCorruptError, SaveMigrationError) as err:
            if not backup_path.exists() or target_path == backup_path:
                self.print(f"[!] Failed to load slot '{normalized}': {err}. No backup available.")
                return None
            self.print(f"[!] Save slot '{normalized}' could not be read: {err}")
            try:
                payload = self._read_payload(backup_path)
            except (SaveError, SaveMigrationError) as backup_err:
                self.print(f"[!] Backup for slot '{normalized}' also failed: {backup_err}")
                return None
            self._write_payload(save_path, backup_path, payload, make_backup=False)
            self.print(f"[Restore] Backup save applied for slot '{normalized}'.")
        except SaveError as err:
            self.print(f"[!] Failed to load slot '{normalized}': {err}")
            return None

        logger.debug("loaded slot %r from %s", normalized, target_path)
        return PlayerState.from_dict(payload["state"]["player"])

    def load_or_new(self, slot: str, name: str | None = None) -> PlayerState:
        player = self.load(slot)
        if player is None:
            return PlayerState.new(self.config, name)
        return player

    def autosave(self, player: PlayerState) -> Optional[Path]:
        if player.current_step_id is None and player.steps_completed == 0:
            return None
        return self.save(self.AUTOSAVE_SLOT, player, label="Autosave", quiet=True)

    def has_slot(self, slot: str) -> bool:
        path = self._slot_path(self._normalize_slot(slot))
        return (
            (path / self.SAVE_FILENAME).exists()
            or (path / self.BACKUP_FILENAME).exists()
            or self._legacy_save_path(path) is not None
        )

    def delete(self, slot: str) -> bool:
        path = self._slot_path(self._normalize_slot(slot))
        if not path.exists():
            return False
        shutil.rmtree(path)
        return True

    def list_slots(self, *, include_special: bool = False) -> List[SlotMetadata]:
        slots: List[SlotMetadata] = []
        if not self.base_path.exists():
            return slots
        for child in sorted(self.base_path.iterdir()):
            if not child.is_dir():
                continue
            if not include_special and child.name == self.AUTOSAVE_SLOT:
                continue
            target_path = child / self.SAVE_FILENAME
            if not target_path.exists():
                target_path = self._legacy_save_path(child)
                if target_path is None:
                    continue
            slots.append(self._read_metadata(target_path))
        return slots

    # ---------- Internal helpers ----------
    def _normalize_slot(self, slot: str) -> str:
        slot = (slot or "").strip().lower()
        if slot in {self.AUTOSAVE_SLOT, self.QUICK_SLOT}:
            return slot
        cleaned = "".join(ch for ch in slot if ch in self._VALID_SLOT_CHARS)
        if not cleaned:
            raise SaveError("Slot names must contain letters or numbers.")
        return cleaned

    def _slot_path(self, slot: str) -> Path:
        return self.base_path / slot

    def _legacy_save_path(self, slot_path: Path) -> Optional[Path]:
        for name in self.LEGACY_SAVE_FILENAMES:
            candidate = slot_path / name
            if candidate.exists():
                return candidate
        return None

    def _build_payload(self, slot: str, player: PlayerState) -> Dict:
        player.ensure_consistency()
        state = player.to_dict()
        state["log"] = state["log"][: self.config.max_log_entries]
        return {
            "version": self.SCHEMA_VERSION,
            "metadata": {
                "schema": "save_v1",
                "version": self.SCHEMA_VERSION,
                "save_slot": slot,
                "saved_at": datetime.now(timezone.utc).isoformat(),
                "player_name": player.variables.get("character_name"),
                "current_step_id": player.current_step_id,
            },
            "state": {"player": state},
        }

    def _write_payload(self, save_path: Path, backup_path: Path, payload: Dict, *, make_backup: bool) -> None:
        tmp_path = save_path.with_suffix(save_path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump(payload, handle, indent=2)
            handle.write("\n")
        if make_backup and save_path.exists():
            shutil.copy2(save_path, backup_path)
        tmp_path.replace(save_path)

    def _read_payload(self, path: Path) -> Dict:
        try:
            with open(path, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except FileNotFoundError as exc:
            raise SaveError("Save file missing.") from exc
        except json.JSONDecodeError as exc:
            raise SaveCorruptError(f"Invalid JSON: {exc}") from exc
        payload = migrate_save_payload(payload, self.SCHEMA_VERSION)
        self._validate_payload(payload)
        return payload

    def _validate_payload(self, payload: Dict) -> None:
        if not isinstance(payload, dict):
            raise SaveCorruptError("Payload was not an object.")
        version = payload.get("version")
        if version != self.SCHEMA_VERSION:
            raise SaveCorruptError(f"Unsupported schema version: {version!r}")
        state = payload.get("state")
        if not isinstance(state, dict):
            raise SaveCorruptError("State block missing.")
        player = state.get("player")
        if not isinstance(player, dict):
            raise SaveCorruptError("Player block malformed.")
        if not isinstance(player.get("tags"), list):
            raise SaveCorruptError("Missing key: state.player.tags")

    def _read_metadata(self, path: Path) -> SlotMetadata:
        try:
            payload = self._read_payload(path)
        except (SaveError, SaveMigrationError):
            return SlotMetadata(slot=path.parent.name)
        metadata = payload.get("metadata", {})
        return SlotMetadata(
            slot=path.parent.name,
            saved_at=metadata.get("saved_at"),
            player_name=metadata.get("player_name"),
            current_step_id=metadata.get("current_step_id"),
        )
