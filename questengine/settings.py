"""Rules configuration for quest content."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

STAT_NAMES = ("might", "guile", "magic")

DEFAULT_STARTING_STATS = {"might": 2, "guile": 2, "magic": 2}

# Content files are authored with camelCase keys.
_KEY_ALIASES = {
    "startingStats": "starting_stats",
    "statIncreaseAmount": "stat_increase_amount",
    "preferredTagWeight": "preferred_tag_weight",
    "startingPoints": "starting_points",
    "statModifiers": "stat_modifiers",
    "xpPerLevel": "xp_per_level",
    "questXp": "quest_xp",
    "maxLogEntries": "max_log_entries",
    "questTag": "quest_tag",
    "questPrefix": "quest_prefix",
    "internalPrefix": "internal_prefix",
    "tagSkillBonus": "tag_skill_bonus",
    "dieSides": "die_sides",
    "patchTextSeparator": "patch_text_separator",
}


def _clamp(value: int, minimum: int, maximum: int) -> int:
    return max(minimum, min(maximum, value))


@dataclass
class GameConfig:
    """Tunable rules shared by every caller of the engine."""

    starting_stats: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_STARTING_STATS))
    stat_increase_amount: int = 1
    preferred_tag_weight: int = 5
    starting_points: int = 0
    stat_modifiers: Dict[str, Dict[str, int]] = field(default_factory=dict)
    xp_per_level: int = 5
    quest_xp: int = 1
    max_log_entries: int = 100
    quest_tag: str = "quest"
    quest_prefix: str = "q:"
    internal_prefix: str = "_"
    tag_skill_bonus: int = 2
    die_sides: int = 6
    patch_text_separator: str = ""

    def clamp(self) -> "GameConfig":
        stats = {}
        for name in STAT_NAMES:
            stats[name] = _as_int(self.starting_stats.get(name), DEFAULT_STARTING_STATS[name])
        self.starting_stats = stats

        modifiers: Dict[str, Dict[str, int]] = {}
        for tag, mods in (self.stat_modifiers or {}).items():
            if not isinstance(mods, Mapping):
                continue
            cleaned = {
                stat: _as_int(value, 0)
                for stat, value in mods.items()
                if stat in STAT_NAMES
            }
            if cleaned:
                modifiers[str(tag)] = cleaned
        self.stat_modifiers = modifiers

        self.stat_increase_amount = _clamp(int(self.stat_increase_amount), 0, 100)
        self.preferred_tag_weight = _clamp(int(self.preferred_tag_weight), 0, 1000)
        self.starting_points = _clamp(int(self.starting_points), 0, 1000)
        self.xp_per_level = _clamp(int(self.xp_per_level), 1, 1000)
        self.quest_xp = _clamp(int(self.quest_xp), 0, 1000)
        self.max_log_entries = _clamp(int(self.max_log_entries), 1, 10000)
        self.tag_skill_bonus = _clamp(int(self.tag_skill_bonus), 0, 100)
        self.die_sides = _clamp(int(self.die_sides), 2, 100)
        self.quest_tag = str(self.quest_tag) or "quest"
        self.quest_prefix = str(self.quest_prefix) or "q:"
        self.internal_prefix = str(self.internal_prefix)
        self.patch_text_separator = str(self.patch_text_separator)
        return self

    def copy(self) -> "GameConfig":
        return GameConfig.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "GameConfig":
        if not isinstance(data, Mapping):
            return cls()

        values: Dict[str, Any] = {}
        for key, value in data.items():
            values[_KEY_ALIASES.get(key, key)] = value

        defaults = cls()

        def _int(key: str) -> int:
            return _as_int(values.get(key), getattr(defaults, key))

        def _str(key: str) -> str:
            value = values.get(key)
            return value if isinstance(value, str) else getattr(defaults, key)

        starting_stats = values.get("starting_stats")
        if not isinstance(starting_stats, Mapping):
            starting_stats = dict(DEFAULT_STARTING_STATS)
        stat_modifiers = values.get("stat_modifiers")
        if not isinstance(stat_modifiers, Mapping):
            stat_modifiers = {}

        config = cls(
            starting_stats=dict(starting_stats),
            stat_increase_amount=_int("stat_increase_amount"),
            preferred_tag_weight=_int("preferred_tag_weight"),
            starting_points=_int("starting_points"),
            stat_modifiers={k: dict(v) for k, v in stat_modifiers.items() if isinstance(v, Mapping)},
            xp_per_level=_int("xp_per_level"),
            quest_xp=_int("quest_xp"),
            max_log_entries=_int("max_log_entries"),
            quest_tag=_str("quest_tag"),
            quest_prefix=_str("quest_prefix"),
            internal_prefix=_str("internal_prefix"),
            tag_skill_bonus=_int("tag_skill_bonus"),
            die_sides=_int("die_sides"),
            patch_text_separator=_str("patch_text_separator"),
        )
        return config.clamp()


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def load_config(path: Path | str) -> GameConfig:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError:
        return GameConfig()
    except (OSError, json.JSONDecodeError, TypeError):
        return GameConfig()
    # a consolidated content payload nests the rules under "config"
    if isinstance(data, dict) and isinstance(data.get("config"), dict):
        data = data["config"]
    return GameConfig.from_dict(data)
