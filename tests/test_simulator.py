import random

import pytest

from questengine.content import build_content
from questengine.simulator import FAIL, Simulator


def make_simulator(tags=()) -> Simulator:
    content = build_content(
        {
            "steps": [
                {
                    "id": "Market",
                    "tags": ["!quest"],
                    "text": "Stalls.",
                    "options": [
                        {"label": "Take the job", "tags": ["+inv:badge"], "pass": "market_job"},
                        {"label": "Climb", "skill": "might", "dc": 9, "pass": "market_roof", "fail": "market_fall"},
                        {"label": "Show pass", "tags": ["inv:pass"]},
                    ],
                },
                {"id": "market_job", "tags": ["+quest", "+q:job"], "text": "Hired."},
                {"id": "market_roof", "text": "Up."},
                {"id": "market_fall", "tags": ["+status:bruised"], "text": "Down."},
                {"id": "Market", "tags": ["quest"], "text": "Busy."},
                {"id": "@patch:Market", "tags": ["trait:rich"], "options": [{"label": "Buy everything"}]},
            ]
        }
    )
    return Simulator(content, tags, rng=random.Random(0))


def test_set_location_picks_step_and_records_start() -> None:
    sim = make_simulator()
    step = sim.set_location("Market")
    assert step.text == "Stalls."
    assert [entry.option_label for entry in sim.history] == ["(started)"]
    assert sim.history_index == 0


def test_options_preview_grants_and_requirements() -> None:
    sim = make_simulator()
    sim.set_location("Market")
    options = sim.options()
    assert [option.label for option in options] == ["Take the job", "Climb", "Show pass"]
    assert options[0].grants == ("inv:badge", "quest", "q:job")
    assert options[1].grants == ()
    assert not options[2].available
    assert options[2].missing == ("inv:pass",)


def test_patched_step_reflects_tag_edits() -> None:
    sim = make_simulator()
    sim.set_location("Market")
    assert len(sim.patched_step().options) == 3
    sim.add_tag("trait:rich")
    assert [option.label for option in sim.options()][-1] == "Buy everything"
    sim.remove_tag("trait:rich")
    assert len(sim.options()) == 3


def test_take_option_applies_option_and_target_mutations() -> None:
    sim = make_simulator(["trait:x"])
    sim.set_location("Market")
    entry = sim.take_option(0)
    assert entry.added == ["inv:badge", "q:job", "quest"]
    assert entry.tags_before == ["trait:x"]
    assert sorted(entry.tags_after) == ["inv:badge", "q:job", "quest", "trait:x"]
    assert sim.location == "market_job"
    assert sim.current_step().text == "Hired."


def test_skill_outcome_is_chosen_by_author() -> None:
    sim = make_simulator()
    sim.set_location("Market")
    entry = sim.take_option(1, FAIL)
    assert entry.outcome == FAIL
    assert entry.target == "market_fall"
    assert entry.skills == ("might",)
    assert entry.dc == 9
    assert sim.player.has("status:bruised")


def test_back_jump_and_reset() -> None:
    sim = make_simulator()
    sim.set_location("Market")
    sim.take_option(0)

    sim.back()
    assert sim.player.tags == []
    assert sim.location == "Market"
    assert sim.current_step().text == "Stalls."

    sim.jump_to(1)
    assert sim.player.has("quest")
    assert sim.location == "market_job"

    sim.back()
    sim.take_option(1, FAIL)
    assert [entry.option_label for entry in sim.history] == ["(started)", "Climb"]

    sim.reset()
    assert sim.history == []
    assert sim.player.tags == []


def test_take_option_rejects_bad_input() -> None:
    sim = make_simulator()
    with pytest.raises(ValueError):
        sim.take_option(0)
    sim.set_location("Market")
    with pytest.raises(IndexError):
        sim.take_option(7)
    with pytest.raises(ValueError):
        sim.take_option(1, "maybe")


def well_simulator() -> Simulator:
    content = build_content(
        {
            "steps": [
                {
                    "id": "Well",
                    "tags": ["!inv:bucket"],
                    "text": "An empty well.",
                    "options": [{"label": "Take bucket", "tags": ["+inv:bucket"]}],
                },
                {"id": "Well", "tags": ["inv:bucket"], "text": "You hold a bucket."},
            ]
        }
    )
    return Simulator(content, rng=random.Random(0))


def test_option_without_target_reselects_current_step() -> None:
    sim = well_simulator()
    sim.set_location("Well")
    sim.take_option(0)
    assert sim.location == "Well"
    assert sim.current_step().text == "You hold a bucket."
    assert sim.options() == []


def test_tag_edits_reselect_current_step() -> None:
    sim = well_simulator()
    sim.set_location("Well")
    sim.add_tag("inv:bucket")
    assert sim.current_step().text == "You hold a bucket."
    sim.remove_tag("inv:bucket")
    assert sim.current_step().text == "An empty well."


def test_back_and_jump_restore_variables() -> None:
    content = build_content(
        {
            "steps": [
                {"id": "Inn", "text": "Quiet.", "options": ["Ask::inn_host"]},
                {"id": "inn_host", "vars": {"host": ["Mara"]}, "text": "{{host}} waves."},
            ]
        }
    )
    sim = Simulator(content, rng=random.Random(0))
    sim.set_location("Inn")
    sim.take_option(0)
    assert sim.player.variables == {"host": "Mara"}

    sim.back()
    assert sim.player.variables == {}

    sim.jump_to(1)
    assert sim.player.variables == {"host": "Mara"}
