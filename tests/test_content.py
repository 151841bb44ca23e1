import json
from pathlib import Path

import pytest

from questengine.content import (
    ContentError,
    StepOption,
    build_content,
    expand_option,
    load_content,
    merge_quest_files,
    normalize_vars,
)

REPO_ROOT = Path(__file__).resolve().parents[1]


def write_quest(directory: Path, name: str, quest: dict) -> Path:
    path = directory / name
    path.write_text(json.dumps(quest))
    return path


@pytest.mark.parametrize(
    ("raw", "label", "target"),
    [
        ("Go north::north_road", "Go north", "north_road"),
        ("Stay here", "Stay here", None),
        ("Wait::", "Wait", None),
    ],
)
def test_option_shorthand(raw: str, label: str, target) -> None:
    option = expand_option(raw)
    assert option.label == label
    assert option.pass_target == target
    assert option.tags == ()
    assert not option.is_skill_check


def test_option_object_with_skill_list() -> None:
    option = expand_option(
        {"label": "Climb", "skill": ["might", "inv:rope"], "dc": 7, "pass": "top", "fail": "bottom", "hidden": True}
    )
    assert option == StepOption(
        label="Climb",
        pass_target="top",
        fail_target="bottom",
        skills=("might", "inv:rope"),
        dc=7,
        hidden=True,
    )
    assert option.is_skill_check


def test_expand_option_rejects_other_types() -> None:
    with pytest.raises(TypeError):
        expand_option(42)  # type: ignore[arg-type]


def test_normalize_vars_shapes() -> None:
    declared = normalize_vars({"item": "rope", "npc": [{"name": "Ana"}, "Bo"], "gone": None})
    assert declared["item"] == ("rope",)
    assert declared["npc"][0]["name"] == "Ana"
    assert declared["npc"][1] == "Bo"
    assert declared["gone"] is None
    with pytest.raises(TypeError):
        declared["item"] = ("x",)  # type: ignore[index]


def test_build_content_expands_presets_and_patches() -> None:
    payload = {
        "config": {"preferredTagWeight": 3},
        "locations": {"b2": "Market"},
        "option_presets": {"leave": ["Walk away"]},
        "steps": [
            {"id": "Market", "text": "Stalls.", "options": "leave"},
            {"id": "@patch:Market", "tags": ["inv:rope"], "text": {"append": " Rope!"}},
        ],
        "patches": [{"target": "Market", "text": {"prepend": "Hey. "}}],
    }
    content = build_content(payload)
    assert content.config.preferred_tag_weight == 3
    assert [step.id for step in content.steps] == ["Market"]
    assert content.steps[0].options == (StepOption(label="Walk away"),)
    assert len(content.patches_for("Market")) == 2
    assert content.patches_for("market") == []
    assert content.steps_for("MARKET") == list(content.steps)
    assert content.resolve_location(" B2 ") == "Market"
    assert content.resolve_location("z9") == "Z9"


def test_build_content_raises_with_all_errors() -> None:
    with pytest.raises(ContentError) as excinfo:
        build_content({"steps": [{"id": "a"}, {"text": "no id"}]})
    assert len(excinfo.value.errors) == 2
    assert "Invalid quest content" in str(excinfo.value)


def test_merge_reports_conflicts_and_patch_targets(tmp_path: Path) -> None:
    write_quest(
        tmp_path,
        "a.json",
        {
            "name": "A",
            "option_presets": {"leave": ["Walk away"]},
            "steps": [
                {"id": "Hub", "text": "a"},
                {"id": "@patch:Nowhere", "text": {"append": "!"}},
            ],
        },
    )
    write_quest(
        tmp_path,
        "b.json",
        {
            "name": "B",
            "option_presets": {"leave": ["Run"]},
            "steps": [
                {"id": "Hub", "text": "b"},
                {"id": "@patch:@patch:Hub", "text": {"append": "?"}},
            ],
        },
    )
    (tmp_path / "_locations.json").write_text(json.dumps({"A1": "Hub"}))

    payload, report = merge_quest_files(tmp_path)
    assert report.files == [("a.json", "A", 2), ("b.json", "B", 2)]
    assert report.shared_ids == ["Hub"]
    assert any("'leave' conflicts" in err for err in report.errors)
    assert any("targets another patch" in err for err in report.errors)
    assert any("Nowhere" in warning for warning in report.warnings)
    assert payload["locations"] == {"A1": "Hub"}
    assert [patch["target"] for patch in payload["patches"]] == ["Nowhere", "@patch:Hub"]


def test_merge_skips_underscore_files_and_reads_config(tmp_path: Path) -> None:
    (tmp_path / "_config.json").write_text(json.dumps({"questTag": "errand"}))
    (tmp_path / "_notes.json").write_text("not json at all")
    write_quest(tmp_path, "q.json", {"name": "Q", "steps": [{"id": "Hub", "text": "x"}]})
    content = load_content(tmp_path)
    assert content.config.quest_tag == "errand"
    assert content.step_ids() == ["Hub"]


def test_load_content_reports_merge_errors(tmp_path: Path) -> None:
    write_quest(tmp_path, "bad.json", {"name": "Bad"})
    with pytest.raises(ContentError, match="Could not merge"):
        load_content(tmp_path)


def test_load_content_reports_invalid_json(tmp_path: Path) -> None:
    path = tmp_path / "steps.json"
    path.write_text("{")
    with pytest.raises(ContentError, match="invalid JSON"):
        load_content(path)


def test_bundled_quests_load() -> None:
    content = load_content(REPO_ROOT / "quests")
    assert len(content.steps_for("Market")) == 3
    assert len(content.steps_for("Forest")) == 3
    assert len(content.patches_for("Market")) == 1
    assert content.resolve_location("c3") == "Forest"
