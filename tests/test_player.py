import json
from pathlib import Path

import pytest

from questengine.player import PlayerState
from questengine.settings import GameConfig, load_config


def test_removing_quest_tag_clears_quest_scope_and_grants_xp() -> None:
    player = PlayerState(tags=["quest", "q:a", "q:b", "q:b", "trait:x"])
    assert player.remove_tag("quest")
    assert player.tags == ["trait:x"]
    assert player.xp == 1


def test_remove_tag_removes_one_copy() -> None:
    player = PlayerState(tags=["inv:coin", "inv:coin"])
    assert player.remove_tag("inv:coin")
    assert player.count("inv:coin") == 1
    assert not player.remove_tag("inv:gem")


def test_level_tags_are_virtual() -> None:
    config = GameConfig(xp_per_level=5)
    player = PlayerState(xp=5)
    assert player.level(config) == 2
    assert player.effective_counts(config)["level"] == 2
    assert "level" not in player.tags


def test_grant_xp_flags_level_up_until_a_stat_is_raised() -> None:
    config = GameConfig(xp_per_level=2)
    player = PlayerState.new(config)
    assert not player.grant_xp(1, config)
    assert player.grant_xp(1, config)
    assert player.leveled_up
    player.increase_stat("might", 1)
    assert not player.leveled_up
    assert player.stats["might"] == 3


def test_increase_stat_rejects_unknown_stats() -> None:
    player = PlayerState.new()
    with pytest.raises(ValueError, match="unknown stat"):
        player.increase_stat("charm", 1)


def test_stat_modifiers_follow_held_tags() -> None:
    config = GameConfig(stat_modifiers={"trait:strong": {"might": 2}})
    player = PlayerState.new(config)
    assert player.effective_stat("might", config) == 2
    player.add_tag("trait:strong")
    assert player.effective_stat("might", config) == 4
    assert player.stats["might"] == 2


def test_clear_variable_drops_field_entries() -> None:
    player = PlayerState(variables={"npc.name": "Ana", "npc.gender": "female", "npcs": "many"})
    player.clear_variable("npc")
    assert player.variables == {"npcs": "many"}


def test_log_is_newest_first_and_capped() -> None:
    player = PlayerState()
    for entry in ("one", "two", "three"):
        player.add_log_entry(entry, cap=2)
    assert player.log == ["three", "two"]


def test_groupings_and_summary() -> None:
    player = PlayerState(
        tags=["inv:rope", "inv:coin", "inv:coin", "trait:brave", "ally:mira", "done:cat", "status:tired"],
        stats={"might": 1, "guile": 2, "magic": 3},
    )
    assert player.inventory() == [("coin", 2), ("rope", 1)]
    assert player.traits() == ["brave"]
    assert player.allies() == ["mira"]
    assert player.completed_quests() == ["cat"]
    assert player.statuses() == ["tired"]
    assert "ITEMS:[coin x2, rope]" in player.summary()


def test_from_dict_repairs_malformed_fields() -> None:
    player = PlayerState.from_dict(
        {
            "tags": ["inv:rope", 3],
            "variables": {"a": 1, "b": None},
            "log": "nope",
            "stats": {"might": "lots", "guile": 4},
            "xp": -2,
            "current_step_id": 7,
        }
    )
    assert player.tags == ["inv:rope"]
    assert player.variables == {"a": "1"}
    assert player.log == []
    assert player.stats == {"might": 0, "guile": 4, "magic": 0}
    assert player.xp == 0
    assert player.current_step_id is None


def test_to_dict_round_trip_preserves_state() -> None:
    player = PlayerState(tags=["x", "x"], variables={"v": "1"}, log=["hi"], xp=3, steps_completed=4)
    clone = PlayerState.from_dict(player.to_dict())
    assert clone.to_dict() == player.to_dict()


def test_new_player_uses_config_stats_and_name() -> None:
    config = GameConfig(starting_stats={"might": 4, "guile": 1, "magic": 0})
    player = PlayerState.new(config, "  Ash ", {"magic": 3})
    assert player.stats == {"might": 4, "guile": 1, "magic": 3}
    assert player.variables["character_name"] == "Ash"


def test_config_accepts_camel_case_and_clamps() -> None:
    config = GameConfig.from_dict(
        {
            "preferredTagWeight": 7,
            "xpPerLevel": 0,
            "maxLogEntries": "12",
            "dieSides": True,
            "statModifiers": {"trait:x": {"might": 1, "charm": 5}, "bad": 3},
            "startingStats": {"might": 5},
        }
    )
    assert config.preferred_tag_weight == 7
    assert config.xp_per_level == 1
    assert config.max_log_entries == 12
    assert config.die_sides == 6
    assert config.stat_modifiers == {"trait:x": {"might": 1}}
    assert config.starting_stats == {"might": 5, "guile": 2, "magic": 2}


def test_load_config_reads_nested_payload(tmp_path: Path) -> None:
    path = tmp_path / "steps.json"
    path.write_text(json.dumps({"config": {"questTag": "errand"}, "steps": []}))
    assert load_config(path).quest_tag == "errand"
    assert load_config(tmp_path / "missing.json") == GameConfig()
