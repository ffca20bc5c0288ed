"""Visual Director CLI entrypoints."""

from __future__ import annotations

import argparse
import json
import shlex
import sys
from dataclasses import replace
from pathlib import Path
from typing import Callable, Sequence

from .cli_progress import ProgressTicker
from .config import DirectorSettings
from .credentials import CredentialStore
from .engine import DirectorEngine
from .errors import ReferenceImageError
from .executor import GenerationResult
from .inputs import ReferenceCategory, ReferenceImage, ReferenceImageSet
from .plans import DirectorPlan, PlanMode
from .session import SessionController, SessionState
from .utils import load_dotenv

CHAT_HELP = """Commands:
  <text>            create a director plan for <text>
  /face PATH...     add face references      /body PATH...   add body references
  /style PATH...    add style references     /input PATH     set the image to edit
  /link URL         set the dataset link     /key KEY        select an API key
  /go               confirm the plan         /cancel         discard the plan
  /prompt           print the final prompt   /save PATH      save the generated image
  /tier             show the account tier    /reset          start over (keeps references)
  /clear            drop all references      /quit           exit"""


def _add_reference_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--face", action="append", default=[], help="Face reference image (repeatable)")
    parser.add_argument("--body", action="append", default=[], help="Body reference image (repeatable)")
    parser.add_argument("--style", action="append", default=[], help="Style reference image (repeatable)")
    parser.add_argument("--input", dest="input_image", help="Image to edit")
    parser.add_argument("--link", help="Dataset link passed to the planner as extra context")


def _add_common_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--events", help="Path to events.jsonl")
    parser.add_argument("--api-key", dest="api_key", help="API key (overrides GEMINI_API_KEY)")
    parser.add_argument("--dryrun", action="store_true", help="Use the offline dry-run backend")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="visual-director", description="AI art direction for image models")
    sub = parser.add_subparsers(dest="command")

    plan = sub.add_parser("plan", help="Create and print a director plan")
    plan.add_argument("--request", required=True)
    plan.add_argument("--json", action="store_true", help="Print the raw plan JSON")
    _add_reference_args(plan)
    _add_common_args(plan)

    run = sub.add_parser("run", help="Plan, confirm and generate")
    run.add_argument("--request", required=True)
    run.add_argument("--out", required=True, help="Output image path")
    run.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    _add_reference_args(run)
    _add_common_args(run)

    tier = sub.add_parser("tier", help="Show the detected account tier")
    _add_common_args(tier)

    chat = sub.add_parser("chat", help="Interactive session")
    _add_common_args(chat)

    return parser


def _settings_from_args(args: argparse.Namespace) -> DirectorSettings:
    settings = DirectorSettings.from_env()
    if getattr(args, "events", None):
        settings = replace(settings, events_path=Path(args.events).expanduser())
    if getattr(args, "dryrun", False):
        settings = replace(settings, dryrun=True)
    return settings


def _engine_from_args(args: argparse.Namespace) -> DirectorEngine:
    credentials = CredentialStore(getattr(args, "api_key", None))
    return DirectorEngine(_settings_from_args(args), credentials)


def _images_from_args(args: argparse.Namespace, images: ReferenceImageSet) -> None:
    for category, paths in (
        (ReferenceCategory.FACE, args.face),
        (ReferenceCategory.BODY, args.body),
        (ReferenceCategory.STYLE, args.style),
    ):
        kept = images.add_paths(category, paths)
        if kept < len(paths):
            print(f"Only the first {kept} {category.value} reference(s) were kept.")
    if args.input_image:
        images.set_input_image(ReferenceImage.from_path(args.input_image))


def render_plan(plan: DirectorPlan) -> str:
    if plan.mode is PlanMode.BLOCKED:
        return f"BLOCKED: {plan.block_reason or 'Content policy violation detected.'}"
    lines = [f"{plan.mode.value} MODE"]
    if plan.subject_analysis:
        lines.append(f"Subject: {plan.subject_analysis}")
    lines.append("")
    lines.append(plan.final_prompt_text)
    lines.append("")
    lines.append(f"Model: {plan.model_suggestion}")
    lines.append(f"Aspect ratio: {plan.image_config.aspect_ratio}")
    lines.append(f"Resolution: {plan.image_config.image_size}")
    if plan.quality_checks:
        lines.append("Quality checks:")
        lines.extend(f"  - {check}" for check in plan.quality_checks)
    mask = plan.masking_recommendation
    if mask and mask.needs_mask:
        lines.append(f"Masking: {mask.mask_guidance}")
        lines.extend(f"  - {target}" for target in mask.mask_targets)
    if plan.negative_instructions:
        lines.append("Avoid: " + ", ".join(plan.negative_instructions))
    return "\n".join(lines)


def save_result(result: GenerationResult, out_path: Path) -> Path | None:
    data = result.image_bytes()
    if data is None:
        return None
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(data)
    return out_path


def _report_result(result: GenerationResult, out_path: Path | None) -> None:
    if not result.has_image:
        print(result.text)
        return
    suffix = " (fallback model)" if result.used_fallback else ""
    if out_path is None:
        print(f"Image generated with {result.model}{suffix}. Use /save PATH to keep it.")
        return
    saved = save_result(result, out_path)
    print(f"Image generated with {result.model}{suffix}: {saved}")


def _tracked(session: SessionController, label: str, done_label: str, action: Callable[[], object]) -> None:
    ticker = ProgressTicker(label, done_label=done_label)
    ticker.start_ticking()
    ok = False
    try:
        action()
        ok = session.error is None
    finally:
        ticker.stop(done=ok)


def _run_plan(args: argparse.Namespace) -> int:
    engine = _engine_from_args(args)
    session = SessionController(engine)
    _images_from_args(args, session.images)
    _tracked(session, "Designing plan", "Plan ready in", lambda: session.submit(args.request, args.link))
    if session.error or session.plan is None:
        print(f"Plan failed: {session.error}")
        return 1
    if args.json:
        print(json.dumps(session.plan.to_dict(), indent=2, ensure_ascii=False))
    else:
        print(render_plan(session.plan))
    return 0


def _run_full(args: argparse.Namespace, ask: Callable[[str], str] | None = None) -> int:
    ask = ask or input
    engine = _engine_from_args(args)
    session = SessionController(engine)
    _images_from_args(args, session.images)
    _tracked(session, "Designing plan", "Plan ready in", lambda: session.submit(args.request, args.link))
    if session.error or session.plan is None:
        print(f"Plan failed: {session.error}")
        return 1
    print(render_plan(session.plan))
    if session.plan.blocked:
        return 2
    if not args.yes and ask("Generate this image? [y/N] ").strip().lower() not in {"y", "yes"}:
        session.cancel()
        print("Cancelled.")
        return 0
    _tracked(session, "Generating image", "Generated in", session.confirm)
    if session.state is not SessionState.COMPLETE or session.result is None:
        print(f"Generation failed: {session.error}")
        return 1
    _report_result(session.result, Path(args.out).expanduser())
    return 0


def _run_tier(args: argparse.Namespace) -> int:
    engine = _engine_from_args(args)
    tier = engine.detect_account_tier()
    print(f"Account tier: {tier.value}")
    if engine.credentials.available or not engine.needs_credential:
        print(f"Image model: {engine.resolve_image_model()}")
    else:
        print("No API key found. Set GEMINI_API_KEY or pass --api-key.")
    return 0


class ChatLoop:
    def __init__(
        self,
        session: SessionController,
        read: Callable[[str], str] = input,
        write: Callable[[str], None] = print,
    ) -> None:
        self.session = session
        self.read = read
        self.write = write
        self.link: str | None = None

    def run(self) -> int:
        self.write("Visual Director started. Type /help for commands.")
        while True:
            try:
                line = self.read("> ")
            except (EOFError, KeyboardInterrupt):
                self.write("")
                return 0
            if not self.handle(line.strip()):
                return 0

    def handle(self, line: str) -> bool:
        if not line:
            return True
        if not line.startswith("/"):
            self._plan(line)
            return True
        try:
            command, *rest = shlex.split(line)
        except ValueError as exc:
            self.write(f"Could not parse command: {exc}")
            return True
        if command in {"/quit", "/exit"}:
            return False
        if command == "/help":
            self.write(CHAT_HELP)
        elif command in {"/face", "/body", "/style"}:
            self._add_refs(ReferenceCategory(command[1:]), rest)
        elif command == "/input":
            self._set_input(rest)
        elif command == "/link":
            self.link = rest[0] if rest else None
            self.write(f"Dataset link set to {self.link}" if self.link else "Dataset link cleared.")
        elif command == "/key":
            self.session.change_credential(rest[0] if rest else None)
            self.write("API key updated; capabilities will be re-detected.")
        elif command == "/tier":
            self.write(f"Account tier: {self.session.engine.detect_account_tier().value}")
        elif command == "/go":
            self._confirm()
        elif command == "/cancel":
            self._guarded(self.session.cancel, "Plan discarded.")
        elif command == "/reset":
            self.session.reset()
            self.write("Session reset.")
        elif command == "/clear":
            self.session.clear_references()
            self.write("References cleared.")
        elif command == "/prompt":
            self.write(self.session.copyable_prompt or "No plan yet.")
        elif command == "/save":
            self._save(rest)
        else:
            self.write(f"Unknown command {command}. Type /help.")
        return True

    def _plan(self, request: str) -> None:
        if self.session.state is SessionState.COMPLETE:
            self.session.reset()
        try:
            self.session.submit(request, self.link)
        except Exception as exc:
            self.write(str(exc))
            return
        if self.session.error or self.session.plan is None:
            self.write(f"Plan failed: {self.session.error}")
            return
        self.write(render_plan(self.session.plan))
        if not self.session.plan.blocked:
            self.write("Type /go to generate or /cancel to discard.")

    def _confirm(self) -> None:
        try:
            self.session.confirm()
        except Exception as exc:
            self.write(str(exc))
            return
        if self.session.error or self.session.result is None:
            self.write(f"Generation failed: {self.session.error}")
            return
        _report_result(self.session.result, None)

    def _add_refs(self, category: ReferenceCategory, paths: Sequence[str]) -> None:
        try:
            kept = self.session.images.add_paths(category, paths)
        except ReferenceImageError as exc:
            self.write(str(exc))
            return
        self.write(f"Added {kept} {category.value} reference(s); {self.session.images.count()} image(s) attached.")

    def _set_input(self, paths: Sequence[str]) -> None:
        if not paths:
            self.session.images.set_input_image(None)
            self.write("Input image cleared.")
            return
        try:
            self.session.images.set_input_image(ReferenceImage.from_path(paths[0]))
        except ReferenceImageError as exc:
            self.write(str(exc))
            return
        self.write(f"Input image set to {paths[0]}")

    def _save(self, paths: Sequence[str]) -> None:
        result = self.session.result
        if not paths:
            self.write("/save requires a path")
            return
        if result is None or not result.has_image:
            self.write("No generated image to save.")
            return
        self.write(f"Saved {save_result(result, Path(paths[0]).expanduser())}")

    def _guarded(self, action: Callable[[], object], message: str) -> None:
        try:
            action()
        except Exception as exc:
            self.write(str(exc))
            return
        self.write(message)


def main(argv: Sequence[str] | None = None) -> int:
    load_dotenv()
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        if args.command == "plan":
            return _run_plan(args)
        if args.command == "run":
            return _run_full(args)
        if args.command == "tier":
            return _run_tier(args)
        if args.command == "chat":
            return ChatLoop(SessionController(_engine_from_args(args))).run()
    except ReferenceImageError as exc:
        print(str(exc))
        return 1
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
