from __future__ import annotations

import json
from pathlib import Path

import pytest
from PIL import Image

from visual_director import cli
from visual_director.config import DirectorSettings
from visual_director.credentials import CredentialStore
from visual_director.engine import DirectorEngine
from visual_director.plans import DirectorPlan
from visual_director.providers.dryrun import DryRunBackend
from visual_director.session import SessionController, SessionState


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    for name in ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY", "VISUAL_DIRECTOR_EVENTS", "VISUAL_DIRECTOR_DRYRUN"):
        monkeypatch.delenv(name, raising=False)


def _face(tmp_path: Path) -> Path:
    path = tmp_path / "face.png"
    Image.new("RGB", (8, 8), (120, 80, 40)).save(path)
    return path


def test_plan_command_prints_json(tmp_path: Path, capsys) -> None:
    code = cli.main(["plan", "--request", "A lighthouse", "--dryrun", "--json", "--face", str(_face(tmp_path))])

    assert code == 0
    output = capsys.readouterr().out
    payload = json.loads(output[output.index("{") : output.rindex("}") + 1])
    assert payload["final_prompt_text"] == "dryrun: A lighthouse"
    assert payload["image_config"] == {"aspectRatio": "1:1", "imageSize": "1K"}


def test_run_command_writes_image_and_events(tmp_path: Path, capsys) -> None:
    out_path = tmp_path / "out" / "result.png"
    events_path = tmp_path / "events.jsonl"

    code = cli.main(
        ["run", "--request", "A lighthouse", "--dryrun", "--yes", "--out", str(out_path), "--events", str(events_path)]
    )

    assert code == 0
    with Image.open(out_path) as image:
        assert image.format == "PNG"
    types = [json.loads(line)["type"] for line in events_path.read_text(encoding="utf-8").splitlines()]
    assert "capabilities_detected" in types
    assert "generation_completed" in types
    assert "gemini-3-pro-image-preview" in capsys.readouterr().out


def test_run_command_cancelled_by_user(tmp_path: Path, monkeypatch, capsys) -> None:
    monkeypatch.setattr("builtins.input", lambda prompt: "n")
    out_path = tmp_path / "result.png"

    code = cli.main(["run", "--request", "A lighthouse", "--dryrun", "--out", str(out_path)])

    assert code == 0
    assert not out_path.exists()
    assert "Cancelled." in capsys.readouterr().out


def test_plan_command_without_key_fails(capsys) -> None:
    code = cli.main(["plan", "--request", "A lighthouse"])

    assert code == 1
    assert "API key" in capsys.readouterr().out


def test_tier_command_with_dryrun(capsys) -> None:
    assert cli.main(["tier", "--dryrun"]) == 0

    output = capsys.readouterr().out
    assert "Account tier: PRO" in output
    assert "Image model: gemini-3-pro-image-preview" in output


def test_render_plan_blocked_and_masking() -> None:
    blocked = DirectorPlan.from_payload({"mode": "BLOCKED", "block_reason": "Not allowed."})
    masked = DirectorPlan.from_payload(
        {
            "mode": "EDIT",
            "final_prompt_text": "Swap outfit",
            "masking_recommendation": {"needs_mask": True, "mask_targets": ["outfit"], "mask_guidance": "Clothes only"},
            "negative_instructions": ["Blur"],
        }
    )

    assert cli.render_plan(blocked) == "BLOCKED: Not allowed."
    rendered = cli.render_plan(masked)
    assert rendered.startswith("EDIT MODE")
    assert "Masking: Clothes only" in rendered
    assert "Avoid: Blur" in rendered


def test_chat_loop_plans_generates_and_saves(tmp_path: Path) -> None:
    backend = DryRunBackend(models=["models/gemini-2.5-flash-image"])
    engine = DirectorEngine(DirectorSettings(), CredentialStore(use_env=False), backend=backend)
    session = SessionController(engine)
    output: list[str] = []
    loop = cli.ChatLoop(session, read=lambda prompt: "", write=output.append)
    saved = tmp_path / "chat.png"

    assert loop.handle(f"/face {_face(tmp_path)}")
    assert output[-1] == "Added 1 face reference(s); 1 image(s) attached."
    assert loop.handle("A portrait at dusk")
    assert session.state is SessionState.PLAN_READY
    assert loop.handle("/go")
    assert session.state is SessionState.COMPLETE
    assert session.result is not None and session.result.model == "gemini-2.5-flash-image"
    assert loop.handle(f"/save {saved}")
    assert saved.exists()
    assert loop.handle("/prompt")
    assert output[-1] == "dryrun: A portrait at dusk"
    assert loop.handle("/quit") is False


def test_chat_loop_reports_unknown_command() -> None:
    engine = DirectorEngine(DirectorSettings(), CredentialStore(use_env=False), backend=DryRunBackend())
    output: list[str] = []
    loop = cli.ChatLoop(SessionController(engine), write=output.append)

    loop.handle("/frobnicate")
    loop.handle("/cancel")

    assert output[0].startswith("Unknown command /frobnicate")
    assert output[1] == "Nothing to cancel while IDLE."


def test_chat_loop_reports_session_failures() -> None:
    backend = DryRunBackend(
        models=["models/gemini-2.5-flash-image"],
        failures={"gemini-2.5-flash": 500},
    )
    engine = DirectorEngine(DirectorSettings(), CredentialStore(use_env=False), backend=backend)
    session = SessionController(engine)
    output: list[str] = []
    loop = cli.ChatLoop(session, write=output.append)

    loop.handle("A portrait at dusk")

    assert output[-1].startswith("Plan failed: ")
    assert session.state is SessionState.IDLE
    assert session.plan is None

    backend.failures = {"gemini-2.5-flash-image": 500}
    loop.handle("A portrait at dusk")
    loop.handle("/go")

    assert output[-1].startswith("Generation failed: ")
    assert session.state is SessionState.PLAN_READY
    assert session.result is None
