import random

from questengine.content import Step, StepOption, normalize_vars
from questengine.executor import (
    apply_mutations,
    execute,
    execute_step,
    is_option_available,
    missing_requirements,
    split_mutations,
    visible_options,
)
from questengine.player import PlayerState
from questengine.settings import GameConfig


def test_taking_rope_at_the_market() -> None:
    step = Step("Market", tags=("+inv:rope",), text="You take the rope.", log="Took rope")
    player = PlayerState()
    result = execute(step, player)
    assert result.text == "You take the rope."
    assert player.count("inv:rope") == 1
    assert player.log[0] == "Took rope"
    assert player.steps_completed == 1
    assert result.mutations.added == ["inv:rope"]
    assert result.mutations.removed == []


def test_consuming_the_quest_tag_leaves_other_tags() -> None:
    step = Step("Market", tags=("-quest",), text="Done.")
    player = PlayerState(tags=["quest", "q:cat", "q:cat_found", "trait:x"])
    result = execute(step, player)
    assert player.tags == ["trait:x"]
    assert player.xp == 1
    assert result.mutations.removed == ["q:cat", "q:cat_found", "quest"]


def test_quest_completion_reports_level_up() -> None:
    config = GameConfig(xp_per_level=1)
    player = PlayerState(tags=["quest"])
    report = apply_mutations(["-quest"], player, config)
    assert report.leveled_up
    assert player.leveled_up


def test_mutations_apply_in_order_with_multiplicity() -> None:
    player = PlayerState(tags=["inv:coin"])
    apply_mutations(["+inv:coin", "+inv:coin", "-inv:coin", "-inv:gem", "inv:coin", "!quest"], player)
    assert player.count("inv:coin") == 2
    assert player.tags.count("inv:gem") == 0


def test_mutation_names_render_against_current_variables() -> None:
    step = Step(
        "Smithy",
        tags=("+inv:{{item}}",),
        vars=normalize_vars({"item": ["axe"]}),
        text="You now carry a {{item}}.",
    )
    player = PlayerState(variables={"item": "sword"})
    text = execute_step(step, player, rng=random.Random(0))
    assert player.has("inv:sword")
    assert text == "You now carry a axe."


def test_field_object_choice_sets_fields() -> None:
    step = Step(
        "Square",
        vars=normalize_vars({"npc": [{"name": "Ana", "gender": "female"}]}),
        text="{{npc.name}} waves. {{npc.She}} smiles at you.",
        log="Met {{npc.name}}",
    )
    player = PlayerState(variables={"npc": "stale", "npc.title": "Lady"})
    text = execute_step(step, player, rng=random.Random(3))
    assert text == "Ana waves. She smiles at you."
    assert player.variables == {"npc.name": "Ana", "npc.gender": "female"}
    assert player.log == ["Met Ana"]


def test_null_declaration_clears_variable() -> None:
    step = Step("Square", vars=normalize_vars({"npc": None}), text="{{npc.name}} is gone.")
    player = PlayerState(variables={"npc.name": "Ana", "other": "x"})
    assert execute_step(step, player) == "{{npc.name}} is gone."
    assert player.variables == {"other": "x"}


def test_variable_choice_is_random_per_execution() -> None:
    step = Step("Square", vars=normalize_vars({"weather": ["rain", "sun"]}), text="{{weather}}")
    player = PlayerState()
    rng = random.Random(7)
    seen = {execute_step(step, player, rng=rng) for _ in range(40)}
    assert seen == {"rain", "sun"}


def test_log_respects_configured_cap() -> None:
    config = GameConfig(max_log_entries=2)
    player = PlayerState()
    for index in range(3):
        execute(Step("Diary", text="", log=f"entry {index}"), player, config=config)
    assert player.log == ["entry 2", "entry 1"]


def test_option_availability_skips_internal_tags() -> None:
    option = StepOption(label="Sneak", tags=("_seen", "!_alarm", "trait:quiet", "+_sneaked"))
    player = PlayerState(tags=["_alarm"])
    assert not is_option_available(option, player)
    assert missing_requirements(option, player) == ["trait:quiet"]
    player.add_tag("trait:quiet")
    assert is_option_available(option, player)


def test_hidden_options_only_show_when_available() -> None:
    step = Step(
        "Market",
        text="",
        options=(
            StepOption(label="Buy", tags=("inv:coin",)),
            StepOption(label="Secret", tags=("inv:token",), hidden=True),
            StepOption(label="Hello {{character_name}}"),
        ),
    )
    player = PlayerState(variables={"character_name": "Ash"})
    views = visible_options(step, player)
    assert [(view.index, view.label, view.available) for view in views] == [
        (0, "Buy", False),
        (2, "Hello Ash", True),
    ]
    assert views[0].missing == ("inv:coin",)
    player.add_tag("inv:token")
    assert [view.label for view in visible_options(step, player)] == ["Buy", "Secret", "Hello Ash"]


def test_split_mutations() -> None:
    assert split_mutations(["+a", "-b", "c", "!d", "+e"]) == (["a", "e"], ["b"])
