from __future__ import annotations

from pathlib import Path

import pytest

from contentstudio.cli import main
from contentstudio.planning.model import ContentPlan
from contentstudio.planning.parser import dump_plan


@pytest.fixture
def plan_file(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    plan = ContentPlan.model_validate(
        {
            "project": {"title": "Lighthouse"},
            "scenes": [
                {
                    "id": "scene_1",
                    "order": 1,
                    "narration": "a" * 600,
                    "generatedImageUrl": "https://img/kept.png",
                    "dialogues": [{"characterId": "c", "line": "b" * 400}],
                }
            ],
        }
    )
    path = tmp_path / "plan.json"
    path.write_text(dump_plan(plan), encoding="utf-8")
    return path


def test_estimate_prints_character_count_and_cost(plan_file: Path, capsys) -> None:
    exit_code = main(["estimate", str(plan_file), "--voice-provider", "elevenlabs"])

    assert exit_code == 0
    assert capsys.readouterr().out.strip() == "elevenlabs: 1000 characters, about $0.3000"


def test_render_requires_a_stage(plan_file: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["render", str(plan_file)])

    assert excinfo.value.code == 2


def test_render_reports_failed_units_and_keeps_assets(plan_file: Path, monkeypatch, capsys) -> None:
    for name in ("OPENAI_API_KEY", "REPLICATE_API_TOKEN", "FAL_KEY", "ELEVENLABS_API_KEY"):
        monkeypatch.delenv(name, raising=False)

    exit_code = main(["render", str(plan_file), "--videos"])

    assert exit_code == 1
    output = capsys.readouterr()
    assert "video:scene_1" in output.out
    assert "Missing fal API key" in output.out
    reloaded = ContentPlan.model_validate_json(plan_file.read_text(encoding="utf-8"))
    assert reloaded.scenes[0].generated_image_url == "https://img/kept.png"
