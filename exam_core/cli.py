"""Command-line runner for the orchestrator.

  exam-lens solve --subject Math --text "2x+4=14"
  exam-lens solve --subject Physics --image page.jpg
  exam-lens speak "The answer is x equals 5." --no-summary --play
"""
from __future__ import annotations

import argparse
import asyncio
import base64
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from .errors import ExamCoreError
from .orchestrator import build_orchestrator
from .types import ProblemInput, Subject


def _image_arg(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    return base64.b64encode(Path(path).read_bytes()).decode("ascii")


async def _solve(args: argparse.Namespace) -> int:
    orch = build_orchestrator()
    problem = ProblemInput(text=args.text, image_base64=_image_arg(args.image))
    if args.strict:
        report = await orch.solve_report(args.subject, problem)
        print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
        return 0 if report.ok else 1
    result = await orch.solve(args.subject, problem)
    if result.notice:
        print(f"[notice] {result.notice}", file=sys.stderr)
    print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    return 0


async def _speak(args: argparse.Namespace) -> int:
    playback = None
    if args.play:
        from voice.playback import AudioPlaybackEngine

        playback = AudioPlaybackEngine()
    orch = build_orchestrator(playback=playback)

    if args.play:
        handle = await orch.speak(args.content, summarize=args.summary)
        if handle is None:
            print("No audio returned.", file=sys.stderr)
            return 0
        await handle
        return 0

    if args.summary:
        pcm = await orch.summarize_and_speak(args.content)
    else:
        pcm = await orch.gateway.fetch_audio(args.content)
    if not pcm:
        print("No audio returned.", file=sys.stderr)
        return 0
    from voice.pcm import pcm_to_wav_bytes

    Path(args.out).write_bytes(pcm_to_wav_bytes(pcm))
    print(f"Saved {args.out}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="exam-lens", description="Exam question solver (orchestration core)")
    ap.add_argument("--log-level", default="WARNING")
    sub = ap.add_subparsers(dest="command", required=True)

    s = sub.add_parser("solve", help="Quick answer, detailed guide and practice quiz")
    s.add_argument("--subject", default=Subject.MATH.value, choices=[m.value for m in Subject])
    s.add_argument("--text", default=None)
    s.add_argument("--image", default=None, help="Path to a photo of the question")
    s.add_argument("--strict", action="store_true", help="Print per-task outcomes instead of falling back")
    s.set_defaults(func=_solve)

    p = sub.add_parser("speak", help="Summarize a result and synthesize speech")
    p.add_argument("content")
    p.add_argument("--no-summary", dest="summary", action="store_false")
    p.add_argument("--play", action="store_true", help="Play through the default audio device")
    p.add_argument("--out", default="summary.wav")
    p.set_defaults(func=_speak)
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level.upper(), logging.WARNING))
    try:
        return asyncio.run(args.func(args))
    except ExamCoreError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
