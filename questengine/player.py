"""Player state: the tag multiset, quest variables, log and character sheet."""

from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, List, Mapping, Optional

from .settings import STAT_NAMES, GameConfig

logger = logging.getLogger(__name__)

LEVEL_TAG = "level"

INVENTORY_PREFIX = "inv:"
TRAIT_PREFIX = "trait:"
STATUS_PREFIX = "status:"
ALLY_PREFIX = "ally:"
DONE_PREFIX = "done:"


class PlayerState:
    """Mutable per-session state.

    ``tags`` is a multiset kept as a list: duplicates are meaningful and
    order is not. Only the executor and option selection mutate it.
    """

    def __init__(
        self,
        tags=None,
        variables=None,
        log=None,
        *,
        stats=None,
        xp=0,
        steps_completed=0,
        current_step_id=None,
    ):
        self.tags: List[str] = list(tags or [])
        self.variables: Dict[str, str] = dict(variables or {})
        self.log: List[str] = list(log or [])
        self.stats: Dict[str, int] = dict(stats or {})
        self.xp = xp
        self.steps_completed = steps_completed
        self.current_step_id: Optional[str] = current_step_id
        self.leveled_up = False
        self.ensure_consistency()

    @classmethod
    def new(cls, config: GameConfig | None = None, name: str | None = None, stats=None) -> "PlayerState":
        config = config or GameConfig()
        base = dict(config.starting_stats)
        if isinstance(stats, Mapping):
            for stat in STAT_NAMES:
                if stat in stats:
                    base[stat] = stats[stat]
        state = cls(stats=base)
        if name and name.strip():
            state.variables["character_name"] = name.strip()
        return state

    # ---------- Queries ----------
    def count(self, tag: str) -> int:
        return self.tags.count(tag)

    def has(self, tag: str) -> bool:
        return tag in self.tags

    def tag_counts(self) -> Counter:
        return Counter(self.tags)

    def level(self, config: GameConfig | None = None) -> int:
        config = config or GameConfig()
        return self.xp // config.xp_per_level + 1

    def effective_tags(self, config: GameConfig | None = None) -> List[str]:
        """Held tags plus one virtual ``level`` tag per character level."""
        return self.tags + [LEVEL_TAG] * self.level(config)

    def effective_counts(self, config: GameConfig | None = None) -> Counter:
        return Counter(self.effective_tags(config))

    def stat_modifiers(self, config: GameConfig | None = None) -> Dict[str, int]:
        config = config or GameConfig()
        mods = {stat: 0 for stat in STAT_NAMES}
        for tag in self.tags:
            for stat, value in config.stat_modifiers.get(tag, {}).items():
                mods[stat] = mods.get(stat, 0) + value
        return mods

    def effective_stat(self, stat: str, config: GameConfig | None = None) -> int:
        return self.stats.get(stat, 0) + self.stat_modifiers(config).get(stat, 0)

    def _grouped(self, prefix: str) -> List[str]:
        return sorted({tag[len(prefix):] for tag in self.tags if tag.startswith(prefix)})

    def inventory(self) -> List[tuple]:
        counts = Counter(tag[len(INVENTORY_PREFIX):] for tag in self.tags if tag.startswith(INVENTORY_PREFIX))
        return sorted(counts.items())

    def traits(self) -> List[str]:
        return self._grouped(TRAIT_PREFIX)

    def statuses(self) -> List[str]:
        return self._grouped(STATUS_PREFIX)

    def allies(self) -> List[str]:
        return self._grouped(ALLY_PREFIX)

    def completed_quests(self) -> List[str]:
        return self._grouped(DONE_PREFIX)

    def summary(self) -> str:
        stats = " ".join(f"{name.title()}:{self.stats.get(name, 0)}" for name in STAT_NAMES)
        items = ", ".join(f"{item} x{count}" if count > 1 else item for item, count in self.inventory()) or "-"
        traits = ", ".join(self.traits()) or "-"
        return f"{stats} | XP:{self.xp} | ITEMS:[{items}] | TRAITS:[{traits}]"

    # ---------- Mutations ----------
    def add_tag(self, tag: str) -> None:
        self.tags.append(tag)

    def remove_tag(self, tag: str, config: GameConfig | None = None) -> bool:
        """Remove one copy of ``tag``; returns False when it was not held.

        Removing the quest tag ends the quest: it grants quest XP and purges
        every quest-scoped tag regardless of count.
        """
        config = config or GameConfig()
        try:
            self.tags.remove(tag)
        except ValueError:
            return False
        if tag == config.quest_tag:
            self.grant_xp(config.quest_xp, config)
            purged = self.purge_prefix(config.quest_prefix)
            if purged:
                logger.debug("quest ended, cleared %d quest tag(s)", len(purged))
        return True

    def purge_prefix(self, prefix: str) -> List[str]:
        removed = [t for t in self.tags if t.startswith(prefix)]
        self.tags = [t for t in self.tags if not t.startswith(prefix)]
        return removed

    def grant_xp(self, amount: int, config: GameConfig | None = None) -> bool:
        old_level = self.level(config)
        self.xp += amount
        leveled = self.level(config) > old_level
        if leveled:
            self.leveled_up = True
        return leveled

    def increase_stat(self, stat: str, amount: int) -> None:
        if stat not in STAT_NAMES:
            raise ValueError(f"unknown stat '{stat}'")
        self.stats[stat] = self.stats.get(stat, 0) + amount
        self.leveled_up = False

    def set_variable(self, name: str, value: str) -> None:
        self.variables[name] = value

    def clear_variable(self, name: str) -> None:
        """Remove ``name`` and any ``name.field`` entries stored for it."""
        self.variables.pop(name, None)
        prefix = f"{name}."
        for key in [k for k in self.variables if k.startswith(prefix)]:
            del self.variables[key]

    def add_log_entry(self, entry: str, cap: int = 100) -> None:
        self.log.insert(0, entry)
        if len(self.log) > cap:
            del self.log[cap:]

    # ---------- Persistence ----------
    def ensure_consistency(self) -> None:
        if not isinstance(self.tags, list):
            self.tags = list(self.tags or [])
        self.tags = [t for t in self.tags if isinstance(t, str)]
        if not isinstance(self.variables, dict):
            self.variables = {}
        self.variables = {str(k): str(v) for k, v in self.variables.items() if v is not None}
        if not isinstance(self.log, list):
            self.log = []
        self.log = [entry for entry in self.log if isinstance(entry, str)]
        if not isinstance(self.stats, dict):
            self.stats = {}
        for stat in STAT_NAMES:
            value = self.stats.get(stat, 0)
            self.stats[stat] = value if isinstance(value, int) and not isinstance(value, bool) else 0
        for counter in ("xp", "steps_completed"):
            value = getattr(self, counter, 0)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                setattr(self, counter, 0)
        if not isinstance(self.current_step_id, str):
            self.current_step_id = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tags": list(self.tags),
            "variables": dict(self.variables),
            "log": list(self.log),
            "stats": dict(self.stats),
            "xp": self.xp,
            "steps_completed": self.steps_completed,
            "current_step_id": self.current_step_id,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> "PlayerState":
        if not isinstance(data, Mapping):
            return cls()
        return cls(
            tags=data.get("tags") if isinstance(data.get("tags"), list) else [],
            variables=data.get("variables") if isinstance(data.get("variables"), dict) else {},
            log=data.get("log") if isinstance(data.get("log"), list) else [],
            stats=data.get("stats") if isinstance(data.get("stats"), dict) else {},
            xp=data.get("xp", 0),
            steps_completed=data.get("steps_completed", 0),
            current_step_id=data.get("current_step_id"),
        )

    def copy(self) -> "PlayerState":
        clone = PlayerState.from_dict(self.to_dict())
        clone.leveled_up = self.leveled_up
        return clone
