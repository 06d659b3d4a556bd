"""
tjaplay.py

Command line entrypoint. Compiles TJA charts and drives the judge engine headlessly.

Commands
- inspect <chart>: compile and print per-course summaries and compile warnings
- autoplay <chart>: play a course with perfectly timed inputs and print the final session summary
- --demo replaces the chart path with the built-in demo chart

Integration
- Loads config via config.get_config()
- Configures logging once via logging_setup.setup_logging()
- Uses TimingModel as the single source of song time during autoplay
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from chart_models import BRANCH_NAMES, CompileResult, Course, NoteType
from config import AppConfig, get_config
from demo_chart import build_demo_chart_text
from judge import JudgeEngine
from logging_setup import setup_logging
from session_state import SessionState
from timing_model import TimingModel
from tja_compiler import compile_chart, select_branch


logger = logging.getLogger("tjaplay")


class ChartLoadError(Exception):
    pass


def format_time(seconds: float) -> str:
    """Format seconds as m:ss.mmm."""
    total_milliseconds = int(round(max(0.0, float(seconds)) * 1000.0))
    minutes, remainder = divmod(total_milliseconds, 60_000)
    whole_seconds, milliseconds = divmod(remainder, 1000)
    return f"{minutes}:{whole_seconds:02d}.{milliseconds:03d}"


def _read_chart_text(chart_path: Optional[str], *, use_demo: bool) -> str:
    if use_demo:
        return build_demo_chart_text()
    if not chart_path:
        raise ChartLoadError("A chart path is required unless --demo is given")

    path = Path(chart_path)
    try:
        raw_bytes = path.read_bytes()
    except OSError as exception:
        raise ChartLoadError(f"Failed to read chart file: {path}. Error: {exception}") from exception

    # TJA files in the wild are UTF-8 or Shift-JIS.
    for encoding in ("utf-8-sig", "shift_jis"):
        try:
            return raw_bytes.decode(encoding)
        except UnicodeDecodeError:
            continue
    return raw_bytes.decode("utf-8", errors="replace")


def _pick_course(result: CompileResult, course_name: Optional[str]) -> Course:
    if not result.courses:
        raise ChartLoadError("Chart contains no playable course")
    if not course_name:
        return result.courses[-1]
    course = result.course(course_name)
    if course is None:
        available = [item.name for item in result.courses]
        raise ChartLoadError(f"Course {course_name!r} not found. Available: {available}")
    return course


def _course_summary(course: Course) -> Dict[str, Any]:
    type_counts: Dict[str, int] = {}
    for note in course.notes:
        key = note.type.name.lower()
        type_counts[key] = type_counts.get(key, 0) + 1

    return {
        "name": course.name,
        "bpm": course.bpm,
        "offset": course.offset,
        "notes": len(course.notes),
        "note_types": type_counts,
        "measures": len(course.measure_lines),
        "scroll_changes": len(course.scroll_changes),
        "has_branch": course.has_branch,
        "branches": {name: len(segment.notes) for name, segment in course.branches.items()},
        "total_time": round(course.total_time, 6),
    }


def _run_inspect(args: argparse.Namespace) -> int:
    chart_text = _read_chart_text(args.chart, use_demo=bool(args.demo))
    result = compile_chart(chart_text)

    payload = {
        "ok": True,
        "courses": [_course_summary(course) for course in result.courses],
        "warnings": [
            {"line_number": warning.line_number, "line": warning.line, "message": warning.message}
            for warning in result.warnings
        ],
    }
    if args.json:
        print(json.dumps(payload, ensure_ascii=False, indent=2))
        return 0

    for summary in payload["courses"]:
        print(
            f"{summary['name']}: {summary['notes']} notes, {summary['measures']} measures, "
            f"bpm {summary['bpm']:g}, length {format_time(summary['total_time'])}"
        )
        if summary["has_branch"]:
            branch_text = ", ".join(f"{name}={count}" for name, count in summary["branches"].items())
            print(f"  branches: {branch_text}")
    for warning in result.warnings:
        print(f"warning: {warning}")
    return 0


def _autoplay(course: Course, app_config: AppConfig, *, fps: float, note_speed: Optional[float]) -> SessionState:
    """Play course frame by frame with a perfect input at every don/ka note and one hit per
    frame while a roll or balloon is open."""
    frame_seconds = 1.0 / float(fps)
    wall_clock = {"now": 0.0}

    session = SessionState()
    engine = JudgeEngine(session, app_config, clock=lambda: wall_clock["now"])
    if note_speed is not None:
        engine.set_note_speed(note_speed)
    engine.start(course)

    timing = TimingModel()
    pending_inputs = [
        (float(note.time), note.type.hit_class())
        for note in course.notes
        if note.type.hit_class() is not None
    ]
    input_cursor = 0
    frame_index = 0
    song_time = 0.0

    while song_time <= course.total_time:
        song_time = timing.update_player_time_seconds(frame_index * frame_seconds)
        wall_clock["now"] = song_time

        while input_cursor < len(pending_inputs) and pending_inputs[input_cursor][0] <= song_time:
            input_time, hit_type = pending_inputs[input_cursor]
            engine.handle_input(hit_type, course, input_time)
            input_cursor += 1

        engine.advance(course, song_time, True)

        if session.active_rolls or session.active_balloons:
            engine.handle_input("don", course, song_time)

        frame_index += 1

    logger.info("autoplay finished after %d frames (%s)", frame_index, format_time(song_time))
    return session


def _run_autoplay(args: argparse.Namespace, app_config: AppConfig) -> int:
    if args.fps <= 0:
        raise ChartLoadError("--fps must be positive")

    chart_text = _read_chart_text(args.chart, use_demo=bool(args.demo))
    result = compile_chart(chart_text)
    for warning in result.warnings:
        logger.warning("chart: %s", warning)

    course = _pick_course(result, args.course)
    if args.branch:
        course = select_branch(course, args.branch)

    special_count = sum(1 for note in course.notes if note.type.is_special and note.type is not NoteType.ROLL_END)
    logger.info(
        "autoplay %r (%d notes, %d rolls and balloons, %s)",
        course.name,
        len(course.notes),
        special_count,
        format_time(course.total_time),
    )

    session = _autoplay(course, app_config, fps=float(args.fps), note_speed=args.note_speed)
    summary = session.summary()
    if args.json:
        print(json.dumps({"ok": True, "summary": summary}, ensure_ascii=False, indent=2))
        return 0

    counts = summary["hit_count"]
    print(f"{summary['course']}" + (f" [{summary['branch']}]" if summary["branch"] else ""))
    print(f"  score     {summary['score']}")
    print(f"  max combo {summary['max_combo']}")
    print(
        f"  perfect {counts['perfect']}  good {counts['good']}  bad {counts['bad']}  miss {counts['miss']}"
    )
    print(f"  rolls {summary['rolls_hit']}  balloon hits {summary['balloon_hits']}")
    return 0


def build_argument_parser() -> argparse.ArgumentParser:
    common_parser = argparse.ArgumentParser(add_help=False)
    common_parser.add_argument("--demo", action="store_true", help="Use the built-in demo chart instead of a file.")
    common_parser.add_argument("--quiet", action="store_true", help="Only log warnings and errors.")
    common_parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    common_parser.add_argument("--json", action="store_true", help="Print machine readable JSON.")

    parser = argparse.ArgumentParser(prog="tjaplay", description="TJA chart compiler and judge engine")
    subparsers = parser.add_subparsers(dest="command", required=True)

    inspect_parser = subparsers.add_parser(
        "inspect",
        parents=[common_parser],
        help="Compile a chart and summarize its courses.",
    )
    inspect_parser.add_argument("chart", nargs="?", default=None, help="Path to a .tja file.")

    autoplay_parser = subparsers.add_parser(
        "autoplay",
        parents=[common_parser],
        help="Play a course with perfect inputs.",
    )
    autoplay_parser.add_argument("chart", nargs="?", default=None, help="Path to a .tja file.")
    autoplay_parser.add_argument("--course", default=None, help="Course name (default: last course).")
    autoplay_parser.add_argument("--branch", choices=list(BRANCH_NAMES), default=None, help="Branch to play.")
    autoplay_parser.add_argument("--fps", type=float, default=60.0, help="Simulated frames per second.")
    autoplay_parser.add_argument("--note-speed", type=float, default=None, help="Note speed multiplier.")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_argument_parser().parse_args(argv)

    try:
        app_config, config_path = get_config()
    except (OSError, ValueError) as exception:
        print(json.dumps({"ok": False, "error": str(exception)}, ensure_ascii=False, indent=2))
        return 2

    setup_logging(args, config_level=app_config.logging.level)
    logger.debug("config: %s", config_path if config_path is not None else "(defaults)")

    try:
        if args.command == "inspect":
            return _run_inspect(args)
        return _run_autoplay(args, app_config)
    except (ChartLoadError, ValueError) as exception:
        print(json.dumps({"ok": False, "error": str(exception)}, ensure_ascii=False, indent=2))
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
