# -*- coding: utf-8 -*-
########################
# chart_models.py
########################
# Purpose:
# - Core data models produced by the chart compiler and consumed by the judge engine.
# - Defines note types, Course, measure lines, scroll breakpoints and branch overlays.
#
# Design notes:
# - Keep these models stable. Prefer extending with new optional fields rather than breaking changes.
# - Notes are immutable. Judgement flags live in note_scheduler.NoteState, indexed by note position.
# - No rendering or audio imports. Plain dataclasses and enums.
#
########################
# Interfaces:
# Public enums:
# - class NoteType(enum.IntEnum): DON | KA | DON_BIG | KA_BIG | ROLL | ROLL_BIG | BALLOON | ROLL_END
# - class HitType(str, enum.Enum): DON | KA
# - class Judgement(enum.Enum): PERFECT | GOOD | BAD | MISS
#
# Public dataclasses:
# - MeasureSignature(numerator: int = 4, denominator: int = 4)
# - Note(time: float, type: NoteType, gogo: bool, bpm: float, measure: int)
# - MeasureLine(time: float, measure: int, bpm: float)
# - ScrollChange(time: float, scroll_speed: float)
# - BranchSegment(notes, measure_lines, scroll_changes)
# - Course(name, metadata, bpm, offset, measure_signature, notes, measure_lines, scroll_changes,
#          has_branch, branches, total_time, selected_branch)
# - CompileWarning(line_number: int, line: str, message: str)
# - CompileResult(courses: list[Course], warnings: list[CompileWarning])
#
# Public constants:
# - BRANCH_NAMES = ("easy", "normal", "master")
# - TRAILING_MARGIN_SECONDS = 4.0
#
########################

from __future__ import annotations

from dataclasses import dataclass, field
import enum
from typing import Dict, List, Optional


BRANCH_NAMES = ("easy", "normal", "master")

TRAILING_MARGIN_SECONDS = 4.0


class NoteType(enum.IntEnum):
    DON = 1
    KA = 2
    DON_BIG = 3
    KA_BIG = 4
    ROLL = 5
    ROLL_BIG = 6
    BALLOON = 7
    ROLL_END = 8

    def hit_class(self) -> Optional["HitType"]:
        if self in (NoteType.DON, NoteType.DON_BIG):
            return HitType.DON
        if self in (NoteType.KA, NoteType.KA_BIG):
            return HitType.KA
        return None

    @property
    def is_roll(self) -> bool:
        return self in (NoteType.ROLL, NoteType.ROLL_BIG)

    @property
    def is_balloon(self) -> bool:
        return self is NoteType.BALLOON

    @property
    def is_special(self) -> bool:
        return self >= NoteType.ROLL


class HitType(str, enum.Enum):
    DON = "don"
    KA = "ka"


class Judgement(enum.Enum):
    PERFECT = "PERFECT"
    GOOD = "GOOD"
    BAD = "BAD"
    MISS = "MISS"


@dataclass(frozen=True)
class MeasureSignature:
    numerator: int = 4
    denominator: int = 4

    @property
    def beats_per_measure(self) -> float:
        return float(self.numerator) * 4.0 / float(self.denominator)


@dataclass(frozen=True)
class Note:
    time: float
    type: NoteType
    gogo: bool = False
    bpm: float = 150.0
    measure: int = 0


@dataclass(frozen=True)
class MeasureLine:
    time: float
    measure: int
    bpm: float


@dataclass(frozen=True)
class ScrollChange:
    time: float
    scroll_speed: float


@dataclass
class BranchSegment:
    notes: List[Note] = field(default_factory=list)
    measure_lines: List[MeasureLine] = field(default_factory=list)
    scroll_changes: List[ScrollChange] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.notes and not self.measure_lines


@dataclass
class Course:
    name: str
    metadata: Dict[str, str] = field(default_factory=dict)
    bpm: float = 150.0
    offset: float = 0.0
    measure_signature: MeasureSignature = field(default_factory=MeasureSignature)
    notes: List[Note] = field(default_factory=list)
    measure_lines: List[MeasureLine] = field(default_factory=list)
    scroll_changes: List[ScrollChange] = field(default_factory=list)
    has_branch: bool = False
    branches: Dict[str, BranchSegment] = field(default_factory=dict)
    total_time: float = 0.0
    selected_branch: Optional[str] = None
    # Unselected course a branch selection was derived from.
    source: Optional["Course"] = field(default=None, repr=False, compare=False)

    def compute_total_time(self) -> float:
        if not self.notes:
            return 0.0
        last_note_time = float(self.notes[-1].time)
        last_measure_time = float(self.measure_lines[-1].time) if self.measure_lines else 0.0
        return max(last_note_time, last_measure_time) + TRAILING_MARGIN_SECONDS


@dataclass(frozen=True)
class CompileWarning:
    line_number: int
    line: str
    message: str

    def __str__(self) -> str:
        return f"line {self.line_number}: {self.message} ({self.line!r})"


@dataclass
class CompileResult:
    courses: List[Course] = field(default_factory=list)
    warnings: List[CompileWarning] = field(default_factory=list)

    def course(self, name: str) -> Optional[Course]:
        wanted = str(name or "").strip().lower()
        for course in self.courses:
            if course.name.strip().lower() == wanted:
                return course
        return None
