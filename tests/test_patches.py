from collections import Counter

import pytest

from questengine.content import Step, StepOption, StepPatch, TextModification, normalize_vars
from questengine.patches import applicable_patches, compose, patch_applies
from questengine.player import PlayerState
from questengine.settings import GameConfig

BASE = Step(
    "Market",
    tags=("visited", "!quest", "+inv:map"),
    text="Y",
    options=(StepOption(label="Leave"),),
    vars=normalize_vars({"mood": ["calm"]}),
)


def patch(*tags: str, **text: str) -> StepPatch:
    return StepPatch(target="Market", tags=tags, text=TextModification(**text))


def test_no_applicable_patch_returns_base_unchanged() -> None:
    result = compose(BASE, [patch("inv:rope", append=" nope")], PlayerState())
    assert result is BASE


def test_prepends_and_appends_wrap_base_text_in_order() -> None:
    patches = [patch(prepend="X "), patch(append=" W"), patch(prepend="0 ")]
    result = compose(BASE, patches, PlayerState())
    assert result.text == "X 0 Y W"


def test_last_replace_wins_over_everything() -> None:
    patches = [patch(prepend="X "), patch(replace="Q"), patch(append=" W"), patch(replace="Z")]
    assert compose(BASE, patches, PlayerState()).text == "Z"


def test_configured_separator_joins_fragments() -> None:
    config = GameConfig(patch_text_separator="\n\n")
    result = compose(BASE, [patch(prepend="X"), patch(append="W")], PlayerState(), config=config)
    assert result.text == "X\n\nY\n\nW"


@pytest.mark.parametrize(
    ("tags", "applies"),
    [
        (("^visited",), True),
        (("^!visited",), False),
        (("^quest",), True),
        (("^!missing",), True),
        (("^missing",), False),
        (("^inv:map",), True),
    ],
)
def test_base_conditions_check_base_step_tag_names(tags, applies: bool) -> None:
    assert patch_applies(patch(*tags), BASE, Counter()) is applies


def test_player_conditions_use_player_tags() -> None:
    gated = patch("inv:rope", "!quest", append=" Rope!")
    assert compose(BASE, [gated], PlayerState()) is BASE
    assert compose(BASE, [gated], PlayerState(tags=["inv:rope"])).text == "Y Rope!"
    assert compose(BASE, [gated], PlayerState(tags=["inv:rope", "quest"])) is BASE


def test_target_must_match_exactly() -> None:
    other = StepPatch(target="market", text=TextModification(append="!"))
    assert applicable_patches(BASE, [other], Counter()) == []


def test_patch_contributions_are_merged() -> None:
    extra = StepPatch(
        target="Market",
        tags=("^visited", "+inv:salve", "-inv:coin"),
        options=(StepOption(label="Buy a salve"),),
        vars=normalize_vars({"mood": ["tense"], "seller": ["Ana"]}),
    )
    result = compose(BASE, [extra], PlayerState())
    assert result.tags == ("visited", "!quest", "+inv:map", "+inv:salve", "-inv:coin")
    assert [option.label for option in result.options] == ["Leave", "Buy a salve"]
    assert result.vars["mood"] == ("tense",)
    assert result.vars["seller"] == ("Ana",)
    assert result.text == "Y"
    assert BASE.tags == ("visited", "!quest", "+inv:map")
    assert len(BASE.options) == 1
    assert BASE.vars["mood"] == ("calm",)


def test_patch_conditions_see_level_tags() -> None:
    veteran = patch("level>1", append=" Welcome back.")
    config = GameConfig(xp_per_level=2)
    assert compose(BASE, [veteran], PlayerState(xp=1), config=config) is BASE
    assert compose(BASE, [veteran], PlayerState(xp=2), config=config).text == "Y Welcome back."


def test_empty_replace_keeps_base_text() -> None:
    patches = [patch(replace=""), patch(append=" W")]
    assert compose(BASE, patches, PlayerState()).text == "Y W"
