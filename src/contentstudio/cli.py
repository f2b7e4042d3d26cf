from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from dotenv import load_dotenv

from contentstudio.errors import GenerationError
from contentstudio.media_pipeline.model import ImageModel, ImageProvider, OpenAITTSModel, VideoModel, VoiceProvider
from contentstudio.orchestrator import StudioOrchestrator, UnitResult
from contentstudio.planning.llm import TextModel
from contentstudio.planning.model import ContentPlan, PlanningInput
from contentstudio.planning.parser import dump_plan
from contentstudio.status import StatusTracker

logger = logging.getLogger(__name__)


def _choices(enum_cls) -> List[str]:
    return [member.value for member in enum_cls]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Plan a narrative video project and generate its images, clips and voices."
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Optional path to studio configuration JSON/YAML",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    plan = subparsers.add_parser("plan", help="Stream a content plan from a planning input JSON file")
    plan.add_argument("input", type=Path, help="Planning input JSON (camelCase fields)")
    plan.add_argument("-o", "--output", type=Path, default=Path("plan.json"), help="Where to write the plan")
    plan.add_argument("--text-model", choices=_choices(TextModel), help="Chat model used for planning")

    render = subparsers.add_parser("render", help="Generate assets for every scene of a plan")
    render.add_argument("plan", type=Path, help="Plan JSON written by the plan command")
    render.add_argument("--images", action="store_true", help="Generate scene images")
    render.add_argument("--videos", action="store_true", help="Generate scene clips from the scene images")
    render.add_argument("--voices", action="store_true", help="Generate narration and dialogue audio")
    render.add_argument("--image-provider", choices=_choices(ImageProvider))
    render.add_argument("--image-model", choices=_choices(ImageModel))
    render.add_argument("--reference-image", help="Reference image URL for character consistency")
    render.add_argument("--video-model", choices=_choices(VideoModel))
    render.add_argument("--duration", type=float, help="Requested clip length in seconds")
    render.add_argument("--aspect-ratio", help="Clip aspect ratio, e.g. 16:9")
    render.add_argument("--voice-provider", choices=_choices(VoiceProvider))

    estimate = subparsers.add_parser("estimate", help="Estimate text-to-speech cost for a plan")
    estimate.add_argument("plan", type=Path, help="Plan JSON written by the plan command")
    estimate.add_argument("--voice-provider", choices=_choices(VoiceProvider))
    estimate.add_argument("--tts-model", choices=_choices(OpenAITTSModel))
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    orchestrator = StudioOrchestrator.from_file(args.config) if args.config else StudioOrchestrator.default()

    if args.command == "plan":
        return _run_plan(orchestrator, args)
    if args.command == "render":
        if not (args.images or args.videos or args.voices):
            parser.error("render needs at least one of --images, --videos, --voices")
        return _run_render(orchestrator, args)
    return _run_estimate(orchestrator, args)


def _run_plan(orchestrator: StudioOrchestrator, args: argparse.Namespace) -> int:
    config = orchestrator.config
    planning = PlanningInput.model_validate(json.loads(args.input.read_text(encoding="utf-8")))

    def echo(chunk: str) -> None:
        sys.stdout.write(chunk)
        sys.stdout.flush()

    try:
        plan = orchestrator.generate_plan(
            config.credentials().openai,
            args.text_model or config.text_model,
            planning,
            on_chunk=echo,
        )
    except GenerationError as exc:
        print(f"\nPlan generation failed: {exc}", file=sys.stderr)
        return 1
    args.output.write_text(dump_plan(plan), encoding="utf-8")
    print(f"\nWrote plan '{plan.project.title}' ({len(plan.scenes)} scenes) to {args.output}")
    return 0


def _run_render(orchestrator: StudioOrchestrator, args: argparse.Namespace) -> int:
    config = orchestrator.config
    plan = _load_plan(args.plan)
    credentials = config.credentials()
    tracker = StatusTracker()
    results: List[UnitResult] = []

    if args.images:
        results += orchestrator.generate_all_images(
            plan,
            args.image_provider or config.image_provider,
            args.image_model or config.image_model,
            credentials,
            tracker,
            reference_image_url=args.reference_image,
        )
        # Saved after every stage.
        _save_plan(plan, args.plan)
    if args.videos:
        results += orchestrator.generate_all_videos(
            plan,
            args.video_model or config.video_model,
            credentials,
            tracker,
            duration_seconds=args.duration,
            aspect_ratio=args.aspect_ratio,
        )
        _save_plan(plan, args.plan)
    if args.voices:
        results += orchestrator.generate_all_voices(plan, args.voice_provider or config.voice_provider, credentials, tracker)
        _save_plan(plan, args.plan)

    for result in results:
        detail = result.url or result.error or ""
        print(f"{str(result.key):<24} {result.status.value:<10} {detail}")
    failed = [result for result in results if result.error]
    if failed:
        print(f"{len(failed)} of {len(results)} units failed", file=sys.stderr)
        return 1
    return 0


def _run_estimate(orchestrator: StudioOrchestrator, args: argparse.Namespace) -> int:
    config = orchestrator.config
    provider = VoiceProvider(args.voice_provider or config.voice_provider)
    characters, usd = orchestrator.estimate_voice_cost(_load_plan(args.plan), provider, args.tts_model)
    print(f"{provider.value}: {characters} characters, about ${usd:.4f}")
    return 0


def _load_plan(path: Path) -> ContentPlan:
    # Plans written by this tool already carry generated asset URLs; validate
    # directly instead of re-parsing model output.
    return ContentPlan.model_validate_json(path.read_text(encoding="utf-8"))


def _save_plan(plan: ContentPlan, path: Path) -> None:
    path.write_text(dump_plan(plan), encoding="utf-8")
    logger.info("Updated %s", path)


if __name__ == "__main__":
    raise SystemExit(main())
