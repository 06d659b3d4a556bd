# -*- coding: utf-8 -*-
########################
# tja_compiler.py
########################
# Purpose:
# - Compile TJA chart text into chart_models.Course records with absolute note timestamps.
# - Resolve tempo changes, time signatures, scroll breakpoints and difficulty branches.
#
# Design notes:
# - Pure parsing. No file, audio or rendering I/O.
# - Maximally permissive: malformed directives never raise. Each ignored line is recorded as a
#   CompileWarning and the previous compiler state is kept.
# - Branch regions compile each branch from the same TimelineCursor snapshot. The main timeline
#   resumes from merge_branch_end, the latest end across branches that produced content.
# - Branch content is kept in Course.branches. select_branch builds the playable overlay.
#
########################
# Interfaces:
# Public dataclasses:
# - TimelineCursor(time: float, measure: int, bpm: float, signature: MeasureSignature, gogo: bool)
#   - measure_duration() -> float
#   - advance_measure() -> TimelineCursor
#
# Public functions:
# - measure_duration(bpm: float, signature: MeasureSignature) -> float
# - merge_branch_end(start: TimelineCursor, branch_ends: Mapping[str, TimelineCursor]) -> TimelineCursor
# - compile_chart(text: str) -> CompileResult
# - compile_courses(text: str) -> list[Course]   (the course list of compile_chart)
# - select_branch(course: Course, name: str) -> Course
# - parse_balloon_counts(raw_text: str) -> list[Optional[int]]
# - balloon_hits_for(course: Course, note_index: int, default: int = 5) -> int
#
# Inputs:
# - Full chart text (UTF-8 decoded by the caller).
#
# Outputs:
# - CompileResult with courses sorted by time and warnings for every ignored directive.
#
########################

from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
import math
from typing import Dict, List, Mapping, Optional, Tuple

from chart_models import (
    BRANCH_NAMES,
    BranchSegment,
    CompileResult,
    CompileWarning,
    Course,
    MeasureLine,
    MeasureSignature,
    Note,
    NoteType,
    ScrollChange,
)


logger = logging.getLogger(__name__)

DEFAULT_BPM = 150.0
DEFAULT_BALLOON_HITS = 5
UNKNOWN_COURSE_NAME = "Unknown"

_NOTE_CHARACTERS = "12345678"
_MEASURE_ADVANCE_MARKERS = ("7", "8")
_BRANCH_SELECTORS = {"#E": "easy", "#N": "normal", "#M": "master"}


@dataclass(frozen=True)
class TimelineCursor:
    time: float
    measure: int
    bpm: float = DEFAULT_BPM
    signature: MeasureSignature = field(default_factory=MeasureSignature)
    gogo: bool = False

    def measure_duration(self) -> float:
        return measure_duration(self.bpm, self.signature)

    def advance_measure(self) -> "TimelineCursor":
        return replace(self, time=self.time + self.measure_duration(), measure=self.measure + 1)


def measure_duration(bpm: float, signature: MeasureSignature) -> float:
    """Seconds covered by one measure at the given tempo and signature."""
    return (60.0 / float(bpm)) * signature.beats_per_measure


def merge_branch_end(start: TimelineCursor, branch_ends: Mapping[str, TimelineCursor]) -> TimelineCursor:
    """Return the cursor the main timeline resumes from after a branch region.

    branch_ends holds the end cursor of every branch that produced content. Time and measure
    index take the maximum across branches. Tempo, signature and gogo come from the branch that
    ended latest (first in branch order on ties). With no content the start cursor is returned.
    """
    candidates = [branch_ends[name] for name in BRANCH_NAMES if name in branch_ends]
    if not candidates:
        return start

    latest = candidates[0]
    for candidate in candidates[1:]:
        if candidate.time > latest.time:
            latest = candidate

    return replace(
        latest,
        time=max(candidate.time for candidate in candidates),
        measure=max(candidate.measure for candidate in candidates),
    )


def _parse_float(raw_text: str) -> Optional[float]:
    try:
        value = float(str(raw_text).strip())
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def _parse_signature(raw_text: str) -> Optional[MeasureSignature]:
    parts = str(raw_text).strip().split("/")
    if len(parts) != 2:
        return None
    try:
        numerator = int(parts[0].strip())
        denominator = int(parts[1].strip())
    except ValueError:
        return None
    if numerator <= 0 or denominator <= 0:
        return None
    return MeasureSignature(numerator=numerator, denominator=denominator)


def _strip_comment(line: str) -> str:
    return line.split("//", 1)[0].strip()


@dataclass
class _BranchRegion:
    start: TimelineCursor
    segments: Dict[str, BranchSegment] = field(
        default_factory=lambda: {name: BranchSegment() for name in BRANCH_NAMES}
    )
    ends: Dict[str, TimelineCursor] = field(default_factory=dict)
    active: Optional[str] = None


class _ChartCompiler:
    def __init__(self) -> None:
        self._result = CompileResult()
        self._global_metadata: Dict[str, str] = {}
        self._header_bpm = DEFAULT_BPM
        self._header_offset = 0.0
        self._course: Optional[Course] = None
        self._in_note_section = False
        self._cursor = TimelineCursor(time=0.0, measure=0)
        self._branch: Optional[_BranchRegion] = None
        self._line_number = 0
        self._line = ""

    def run(self, text: str) -> CompileResult:
        source = str(text or "")
        if source.startswith("\ufeff"):
            source = source[1:]

        for line_number, raw_line in enumerate(source.splitlines(), start=1):
            self._line_number = line_number
            self._line = raw_line
            line = raw_line.strip()
            if not line or line.startswith("//"):
                continue
            self._handle_line(line)

        if self._course is not None:
            if self._in_note_section:
                self._finish_course()
            else:
                self._warn(f"course {self._course.name!r} has no #START section and was dropped")

        for course in self._result.courses:
            _finalize_course(course)
        return self._result

    def _warn(self, message: str) -> None:
        warning = CompileWarning(line_number=self._line_number, line=self._line, message=message)
        self._result.warnings.append(warning)
        logger.debug("tja: %s", warning)

    # Course lifecycle

    def _new_course(self, name: str) -> Course:
        self._course = Course(
            name=name,
            metadata=dict(self._global_metadata),
            bpm=self._header_bpm,
            offset=self._header_offset,
        )
        self._in_note_section = False
        self._branch = None
        self._cursor = TimelineCursor(time=-self._header_offset, measure=0, bpm=self._header_bpm)
        return self._course

    def _finish_course(self) -> None:
        if self._course is None:
            return
        if self._branch is not None:
            self._close_branch()
        self._result.courses.append(self._course)
        logger.debug(
            "tja: compiled course %r (%d notes, %d measures)",
            self._course.name,
            len(self._course.notes),
            len(self._course.measure_lines),
        )
        self._course = None
        self._in_note_section = False

    # Line dispatch

    def _handle_line(self, line: str) -> None:
        if line.upper().startswith("COURSE:"):
            if self._course is not None:
                if self._in_note_section:
                    self._finish_course()
                else:
                    self._warn(f"course {self._course.name!r} has no #START section and was dropped")
            course_name = line.split(":", 1)[1].strip()
            self._new_course(course_name)
            return

        if not self._in_note_section:
            self._handle_header_line(line)
            return

        self._handle_note_section_line(_strip_comment(line))

    def _handle_header_line(self, line: str) -> None:
        if line.split()[0].upper() == "#START":
            if self._course is None:
                self._new_course(UNKNOWN_COURSE_NAME)
            self._in_note_section = True
            self._cursor = replace(self._cursor, time=-self._course.offset)
            return

        if ":" not in line:
            self._warn("unrecognized header line ignored")
            return

        key, value = line.split(":", 1)
        key = key.strip()
        value = value.strip()
        key_upper = key.upper()

        if self._course is None:
            self._global_metadata[key] = value
            if key_upper == "BPM":
                bpm_value = _parse_float(value)
                if bpm_value is None or bpm_value <= 0.0:
                    self._warn(f"invalid BPM value {value!r}")
                else:
                    self._header_bpm = bpm_value
            elif key_upper == "OFFSET":
                offset_value = _parse_float(value)
                if offset_value is None:
                    self._warn(f"invalid OFFSET value {value!r}")
                else:
                    self._header_offset = offset_value
            return

        self._course.metadata[key] = value
        if key_upper == "BPM":
            bpm_value = _parse_float(value)
            if bpm_value is None or bpm_value <= 0.0:
                self._warn(f"invalid BPM value {value!r}")
            else:
                self._course.bpm = bpm_value
                self._cursor = replace(self._cursor, bpm=bpm_value)
        elif key_upper == "OFFSET":
            offset_value = _parse_float(value)
            if offset_value is None:
                self._warn(f"invalid OFFSET value {value!r}")
            else:
                self._course.offset = offset_value

    def _handle_note_section_line(self, line: str) -> None:
        if not line:
            return

        if line.startswith("#"):
            self._handle_directive(line)
            return

        if "," in line:
            self._handle_note_row(line.split(",", 1)[0].strip())
            return

        self._warn("note row without ',' terminator ignored")

    def _handle_directive(self, line: str) -> None:
        parts = line.split(None, 1)
        name = parts[0].upper()
        argument = parts[1].strip() if len(parts) > 1 else ""
        course = self._course

        if name == "#END":
            self._finish_course()
            return
        if name == "#START":
            self._warn("#START inside an open note section ignored")
            return
        if name == "#GOGOSTART":
            self._cursor = replace(self._cursor, gogo=True)
            return
        if name == "#GOGOEND":
            self._cursor = replace(self._cursor, gogo=False)
            return

        if name == "#BPMCHANGE":
            bpm_value = _parse_float(argument)
            if bpm_value is None or bpm_value <= 0.0:
                self._warn(f"invalid #BPMCHANGE value {argument!r}")
                return
            self._cursor = replace(self._cursor, bpm=bpm_value)
            course.bpm = bpm_value
            return

        if name == "#MEASURE":
            signature = _parse_signature(argument)
            if signature is None:
                self._warn(f"invalid #MEASURE value {argument!r}")
                return
            self._cursor = replace(self._cursor, signature=signature)
            course.measure_signature = signature
            return

        if name == "#SCROLL":
            scroll_value = _parse_float(argument)
            if scroll_value is None:
                self._warn(f"invalid #SCROLL value {argument!r}")
                return
            _notes, _lines, scroll_changes = self._target_lists()
            scroll_changes.append(ScrollChange(time=self._cursor.time, scroll_speed=scroll_value))
            return

        if name == "#BRANCHSTART":
            self._open_branch()
            return
        if name in _BRANCH_SELECTORS:
            self._select_branch_buffer(_BRANCH_SELECTORS[name])
            return
        if name == "#BRANCHEND":
            if self._branch is None:
                self._warn("#BRANCHEND without #BRANCHSTART ignored")
                return
            self._close_branch()
            return

        self._warn(f"unsupported directive {name} ignored")

    # Branch regions

    def _open_branch(self) -> None:
        if self._branch is not None:
            self._close_branch()
        self._course.has_branch = True
        self._branch = _BranchRegion(start=self._cursor)

    def _select_branch_buffer(self, branch_name: str) -> None:
        region = self._branch
        if region is None:
            self._warn(f"branch selector for {branch_name!r} outside #BRANCHSTART ignored")
            return
        if region.active is not None:
            region.ends[region.active] = self._cursor
        region.active = branch_name
        self._cursor = region.start

    def _close_branch(self) -> None:
        region = self._branch
        if region is None:
            return
        if region.active is not None:
            region.ends[region.active] = self._cursor

        produced = {
            name: end_cursor
            for name, end_cursor in region.ends.items()
            if not region.segments[name].is_empty()
        }
        self._cursor = merge_branch_end(region.start, produced)

        for name in BRANCH_NAMES:
            segment = region.segments[name]
            if segment.is_empty() and not segment.scroll_changes:
                continue
            target = self._course.branches.setdefault(name, BranchSegment())
            target.notes.extend(segment.notes)
            target.measure_lines.extend(segment.measure_lines)
            target.scroll_changes.extend(segment.scroll_changes)

        self._branch = None

    def _target_lists(self) -> Tuple[List[Note], List[MeasureLine], List[ScrollChange]]:
        region = self._branch
        if region is not None and region.active is not None:
            segment = region.segments[region.active]
            return segment.notes, segment.measure_lines, segment.scroll_changes
        course = self._course
        return course.notes, course.measure_lines, course.scroll_changes

    # Note rows

    def _handle_note_row(self, row: str) -> None:
        notes, measure_lines, _scroll_changes = self._target_lists()
        cursor = self._cursor
        measure_lines.append(MeasureLine(time=cursor.time, measure=cursor.measure, bpm=cursor.bpm))

        if row and row not in _MEASURE_ADVANCE_MARKERS:
            note_interval = cursor.measure_duration() / len(row)
            for position, character in enumerate(row):
                if character not in _NOTE_CHARACTERS:
                    continue
                notes.append(
                    Note(
                        time=cursor.time + position * note_interval,
                        type=NoteType(int(character)),
                        gogo=cursor.gogo,
                        bpm=cursor.bpm,
                        measure=cursor.measure,
                    )
                )

        self._cursor = cursor.advance_measure()


def _time_key(item) -> float:
    return float(item.time)


def _finalize_course(course: Course) -> None:
    course.notes.sort(key=_time_key)
    course.measure_lines.sort(key=_time_key)
    course.scroll_changes.sort(key=_time_key)
    for segment in course.branches.values():
        segment.notes.sort(key=_time_key)
        segment.measure_lines.sort(key=_time_key)
        segment.scroll_changes.sort(key=_time_key)
    course.total_time = course.compute_total_time()


def compile_chart(text: str) -> CompileResult:
    """Compile chart text. Never raises for malformed content."""
    return _ChartCompiler().run(text)


def compile_courses(text: str) -> List[Course]:
    return compile_chart(text).courses


def select_branch(course: Course, name: str) -> Course:
    """Return a playable Course with the named branch overlaid on the main timeline.

    The result is always derived from the unselected source course, so selecting the same
    branch again (on either the source or a previous selection) yields the same notes.
    """
    if course is None:
        raise ValueError("course is required")
    branch_name = str(name or "").strip().lower()
    if branch_name not in BRANCH_NAMES:
        raise ValueError(f"Unsupported branch: {name!r}. Allowed: {list(BRANCH_NAMES)}")

    base = course.source if course.source is not None else course
    segment = base.branches.get(branch_name) or BranchSegment()

    selected = replace(
        base,
        metadata=dict(base.metadata),
        notes=sorted(list(base.notes) + list(segment.notes), key=_time_key),
        measure_lines=sorted(list(base.measure_lines) + list(segment.measure_lines), key=_time_key),
        scroll_changes=sorted(list(base.scroll_changes) + list(segment.scroll_changes), key=_time_key),
        selected_branch=branch_name,
        source=base,
    )
    selected.total_time = selected.compute_total_time()
    return selected


def parse_balloon_counts(raw_text: str) -> List[Optional[int]]:
    counts: List[Optional[int]] = []
    for item in str(raw_text or "").split(","):
        try:
            counts.append(int(item.strip()))
        except ValueError:
            counts.append(None)
    return counts


def balloon_hits_for(course: Course, note_index: int, default: int = DEFAULT_BALLOON_HITS) -> int:
    """Required hits for the balloon at note_index, by its ordinal among the course's balloons."""
    raw_text = course.metadata.get("BALLOON", "") if course.metadata else ""
    if not str(raw_text).strip():
        return int(default)

    ordinal = 0
    for note in course.notes[:note_index]:
        if note.type is NoteType.BALLOON:
            ordinal += 1

    counts = parse_balloon_counts(raw_text)
    if ordinal >= len(counts):
        return int(default)
    value = counts[ordinal]
    if value is None or value <= 0:
        return int(default)
    return int(value)


def _run_unit_tests() -> None:
    chart_text = "\n".join(
        [
            "TITLE:Smoke",
            "BPM:150",
            "COURSE:Oni",
            "#START",
            "1111,",
            "#END",
        ]
    )
    result = compile_chart(chart_text)
    assert len(result.courses) == 1
    course = result.courses[0]
    assert [note.type for note in course.notes] == [NoteType.DON] * 4
    for index, note in enumerate(course.notes):
        assert abs(note.time - index * 0.1) < 1e-9
    assert abs(course.total_time - (0.3 + 4.0)) < 1e-9

    broken = compile_chart("BPM:120\n#START\n#BPMCHANGE fast\n1,\n#END\n")
    assert broken.courses[0].notes[0].bpm == 120.0
    assert len(broken.warnings) == 1


if __name__ == "__main__":
    _run_unit_tests()
    print("tja_compiler.py: ok")
