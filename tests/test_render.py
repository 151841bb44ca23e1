import pytest

from questengine.render import extract_variables, render_text


@pytest.mark.parametrize(
    ("template", "variables", "expected"),
    [
        ("Hello {{name}}!", {"name": "Ash"}, "Hello Ash!"),
        ("Hello {{name}}!", {}, "Hello {{name}}!"),
        ("Hello {{name}}!", {"name": ""}, "Hello {{name}}!"),
        ("{{npc.name}} nods.", {"npc.name": "Bo"}, "Bo nods."),
        ("{{ name }}", {"name": "Ash"}, "{{ name }}"),
        ("", {"name": "Ash"}, ""),
        (None, {}, ""),
    ],
)
def test_render_text(template, variables, expected: str) -> None:
    assert render_text(template, variables) == expected


@pytest.mark.parametrize(
    ("gender", "expected"),
    [
        ("female", "She packed her bag and told herself to hurry; we waved at her."),
        ("male", "He packed his bag and told himself to hurry; we waved at him."),
        ("neutral", "They packed their bag and told themself to hurry; we waved at them."),
    ],
)
def test_pronouns_follow_gender_field(gender: str, expected: str) -> None:
    template = "{{npc.She}} packed {{npc.his}} bag and told {{npc.himself}} to hurry; we waved at {{npc.him}}."
    assert render_text(template, {"npc.gender": gender}) == expected


def test_explicit_field_beats_derived_pronoun() -> None:
    variables = {"npc.gender": "male", "npc.he": "the captain"}
    assert render_text("{{npc.he}} salutes.", variables) == "the captain salutes."


def test_unknown_gender_leaves_placeholder() -> None:
    assert render_text("{{npc.he}}", {"npc.gender": "robot"}) == "{{npc.he}}"


def test_extract_variables() -> None:
    assert extract_variables("{{a}} and {{b.c}} and {{a}}") == ["a", "b.c", "a"]
    assert extract_variables(None) == []
