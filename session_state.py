# -*- coding: utf-8 -*-
########################
# session_state.py
########################
# Purpose:
# - Mutable per-playthrough record: score, combo, hit counters, active rolls and balloons,
#   projectiles, judgement text and the per-note judgement table.
#
# Design notes:
# - Owned by the engine's caller, mutated only by JudgeEngine.
# - Roll and balloon instances are keyed by an integer handle assigned at activation.
# - reset() clears everything, including the pending judgement text expiry and the note table.
# - The presenter reads this object; it never writes to it.
#
########################
# Interfaces:
# Public dataclasses:
# - ScoreState(combo, max_combo, score, perfect_count, good_count, bad_count, miss_count)
#   - apply_judgement(judgement: Judgement) -> int
#   - add_points(points: int) -> None
#   - hit_count -> dict[str, int]
#   - accuracy -> float
# - ActiveRoll(handle, note_index, start_time, end_time, note_type)
# - ActiveBalloon(handle, note_index, start_time, end_time, required_hits, is_popped)
# - ScoreWeights(perfect_points, good_points, bad_points, combo_bonus_per_hit)
#
# Public classes:
# - class SessionState
#   - begin(course: Course) -> None
#   - reset() -> None
#   - set_score_weights(weights: ScoreWeights) -> None
#   - next_handle() -> int
#   - show_judge_text(text: str, now: float) -> None
#   - expire_judge_text(now: float) -> None
#   - summary() -> dict
#
########################

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from chart_models import Course, Judgement, MeasureLine, NoteType
from hit_effects import HitProjectile
from note_scheduler import NoteScheduler, ScheduledNote


JUDGE_TEXT_SECONDS = 0.5


@dataclass(frozen=True)
class ScoreWeights:
    perfect_points: int = 1000
    good_points: int = 500
    bad_points: int = 100
    combo_bonus_per_hit: int = 10


@dataclass
class ScoreState:
    combo: int = 0
    max_combo: int = 0
    score: int = 0
    perfect_count: int = 0
    good_count: int = 0
    bad_count: int = 0
    miss_count: int = 0
    weights: ScoreWeights = field(default_factory=ScoreWeights)

    def apply_judgement(self, judgement: Judgement) -> int:
        """Apply one judgement and return the points it awarded."""
        if judgement is Judgement.PERFECT:
            base_points = self.weights.perfect_points
            self.combo += 1
            self.perfect_count += 1
        elif judgement is Judgement.GOOD:
            base_points = self.weights.good_points
            self.combo += 1
            self.good_count += 1
        elif judgement is Judgement.BAD:
            base_points = self.weights.bad_points
            self.combo = 0
            self.bad_count += 1
        elif judgement is Judgement.MISS:
            base_points = 0
            self.combo = 0
            self.miss_count += 1
        else:
            # Unknown judgements do not mutate score state.
            return 0

        points = base_points + self.combo * self.weights.combo_bonus_per_hit
        self.score += points
        if self.combo > self.max_combo:
            self.max_combo = self.combo
        return points

    def add_points(self, points: int) -> None:
        if points > 0:
            self.score += int(points)

    @property
    def hit_count(self) -> Dict[str, int]:
        return {
            "perfect": self.perfect_count,
            "good": self.good_count,
            "bad": self.bad_count,
            "miss": self.miss_count,
        }

    @property
    def judged_count(self) -> int:
        return self.perfect_count + self.good_count + self.bad_count + self.miss_count

    @property
    def accuracy(self) -> float:
        judged = self.judged_count
        if judged == 0:
            return 0.0
        return (self.perfect_count + 0.5 * self.good_count) / judged


@dataclass
class ActiveRoll:
    handle: int
    note_index: int
    start_time: float
    end_time: float
    note_type: NoteType


@dataclass
class ActiveBalloon:
    handle: int
    note_index: int
    start_time: float
    end_time: float
    required_hits: int
    is_popped: bool = False


class SessionState:
    def __init__(self, weights: Optional[ScoreWeights] = None) -> None:
        self._weights = weights if weights is not None else ScoreWeights()
        self.course: Optional[Course] = None
        self.schedule: Optional[NoteScheduler] = None
        self.reset()

    def reset(self) -> None:
        self.score_state = ScoreState(weights=self._weights)
        self.judge_text = ""
        self.judge_text_expires_at: Optional[float] = None

        self.active_rolls: List[ActiveRoll] = []
        self.active_balloons: List[ActiveBalloon] = []
        self.roll_hit_counts: Dict[int, int] = {}
        self.balloon_hit_counts: Dict[int, int] = {}
        self.last_roll_hit_time: Dict[int, float] = {}
        self._next_handle = 1

        self.hit_notes: List[HitProjectile] = []
        self.visible_notes: List[ScheduledNote] = []
        self.measure_lines: List[MeasureLine] = []

        if self.schedule is not None:
            self.schedule.reset()

    def begin(self, course: Course) -> None:
        """Bind a course and start a fresh playthrough with a clean judgement table."""
        if course is None:
            raise ValueError("course is required")
        self.course = course
        self.schedule = NoteScheduler(course)
        self.reset()

    def set_score_weights(self, weights: ScoreWeights) -> None:
        self._weights = weights
        self.score_state.weights = weights

    def next_handle(self) -> int:
        handle = self._next_handle
        self._next_handle += 1
        return handle

    # Score passthroughs for presenters.

    @property
    def score(self) -> int:
        return self.score_state.score

    @property
    def combo(self) -> int:
        return self.score_state.combo

    @property
    def max_combo(self) -> int:
        return self.score_state.max_combo

    @property
    def hit_count(self) -> Dict[str, int]:
        return self.score_state.hit_count

    def show_judge_text(self, text: str, now: float) -> None:
        self.judge_text = str(text)
        self.judge_text_expires_at = float(now) + JUDGE_TEXT_SECONDS

    def expire_judge_text(self, now: float) -> None:
        if self.judge_text_expires_at is not None and float(now) >= self.judge_text_expires_at:
            self.judge_text = ""
            self.judge_text_expires_at = None

    def summary(self) -> Dict[str, Any]:
        return {
            "course": self.course.name if self.course is not None else None,
            "branch": self.course.selected_branch if self.course is not None else None,
            "score": self.score_state.score,
            "max_combo": self.score_state.max_combo,
            "hit_count": self.score_state.hit_count,
            "accuracy": round(self.score_state.accuracy, 4),
            "rolls_hit": sum(self.roll_hit_counts.values()),
            "balloon_hits": sum(self.balloon_hit_counts.values()),
        }
