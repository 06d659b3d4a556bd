# -*- coding: utf-8 -*-
########################
# timing_model.py
########################
# Purpose:
# - Single source of truth for song timing in gameplay.
# - Converts player (audio clock) time into song time by applying a configurable AV offset.
# - Maps note timestamps to horizontal playfield coordinates using the course scroll breakpoints.
#
# Design notes:
# - Gameplay code must use TimingModel.song_time_seconds.
# - Keep this module pure and deterministic. Shared by the judge engine and the presenter.
# - Clamp player time to non-negative.
# - Breakpoint lookup: the last breakpoint with time <= note time wins. Among equal times the
#   one listed last wins. No breakpoint before the note means a 1.0 multiplier.
#
########################
# Interfaces:
# Public dataclasses:
# - TimingSnapshot(player_time_seconds: float, av_offset_seconds: float, song_time_seconds: float)
#
# Public classes:
# - class TimingModel(av_offset_seconds: float = 0.0)
#   - player_time_seconds() -> float
#   - av_offset_seconds() -> float
#   - song_time_seconds() -> float
#   - set_av_offset_seconds(av_offset_seconds: float) -> None
#   - update_player_time_seconds(player_time_seconds: float) -> float  (song time)
#   - snapshot() -> TimingSnapshot
#
# Public functions:
# - scroll_speed_at(time_seconds: float, scroll_changes: Sequence[ScrollChange]) -> float
# - position_of(note_time, current_time, base_speed, course, judge_line_x=120.0) -> float
# - roll_track_bounds(start_time, end_time, current_time, base_speed, course, judge_line_x=120.0)
#     -> tuple[float, float]
#
# Inputs:
# - player_time_seconds from the host audio clock (seconds).
# - av_offset_seconds from configuration (seconds).
#
# Outputs:
# - Derived song_time_seconds used by JudgeEngine and rendering.
# - Screen x coordinates for notes and roll tracks.
#
########################

from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from chart_models import Course, ScrollChange


JUDGE_LINE_X = 120.0


@dataclass(frozen=True)
class TimingSnapshot:
    player_time_seconds: float
    av_offset_seconds: float
    song_time_seconds: float


class TimingModel:
    """Adapter from the host audio clock to chart (song) seconds."""

    def __init__(self, av_offset_seconds: float = 0.0) -> None:
        self._player_seconds = 0.0
        self._offset_seconds = float(av_offset_seconds)

    def player_time_seconds(self) -> float:
        return self._player_seconds

    def av_offset_seconds(self) -> float:
        return self._offset_seconds

    def song_time_seconds(self) -> float:
        # Negative near the start when the AV offset is negative.
        return self._player_seconds + self._offset_seconds

    def set_av_offset_seconds(self, av_offset_seconds: float) -> None:
        self._offset_seconds = float(av_offset_seconds)

    def update_player_time_seconds(self, player_time_seconds: float) -> float:
        """Record the host clock position and return the resulting song time."""
        self._player_seconds = max(0.0, float(player_time_seconds))
        return self.song_time_seconds()

    def snapshot(self) -> TimingSnapshot:
        return TimingSnapshot(self._player_seconds, self._offset_seconds, self.song_time_seconds())


def scroll_speed_at(time_seconds: float, scroll_changes: Sequence[ScrollChange]) -> float:
    if not scroll_changes:
        return 1.0
    times = [float(change.time) for change in scroll_changes]
    index = bisect.bisect_right(times, float(time_seconds))
    if index == 0:
        return 1.0
    return float(scroll_changes[index - 1].scroll_speed)


def position_of(
    note_time: float,
    current_time: float,
    base_speed: float,
    course: Optional[Course],
    judge_line_x: float = JUDGE_LINE_X,
) -> float:
    time_diff = float(note_time) - float(current_time)
    scroll_changes = course.scroll_changes if course is not None else ()
    if not scroll_changes:
        return float(judge_line_x) + time_diff * float(base_speed)
    multiplier = scroll_speed_at(note_time, scroll_changes)
    return float(judge_line_x) + time_diff * float(base_speed) * multiplier


def roll_track_bounds(
    start_time: float,
    end_time: float,
    current_time: float,
    base_speed: float,
    course: Optional[Course],
    judge_line_x: float = JUDGE_LINE_X,
) -> Tuple[float, float]:
    """Screen x of a roll's head and tail. The head is held at the judge line while the roll is open."""
    head_x = position_of(start_time, current_time, base_speed, course, judge_line_x)
    tail_x = position_of(end_time, current_time, base_speed, course, judge_line_x)
    if float(start_time) <= float(current_time) < float(end_time):
        head_x = float(judge_line_x)
    return head_x, max(head_x, tail_x)


def _run_unit_tests() -> None:
    model = TimingModel(av_offset_seconds=-0.2)
    assert abs(model.update_player_time_seconds(-5.0) - (-0.2)) < 1e-9
    assert model.player_time_seconds() == 0.0
    assert abs(model.update_player_time_seconds(1.5) - 1.3) < 1e-9

    course = Course(name="smoke", scroll_changes=[ScrollChange(time=1.0, scroll_speed=2.0)])
    assert abs(position_of(2.0, 1.0, 300.0, None) - 420.0) < 1e-9
    assert abs(position_of(2.0, 1.0, 300.0, course) - 720.0) < 1e-9
    assert abs(position_of(0.5, 0.0, 300.0, course) - 270.0) < 1e-9


if __name__ == "__main__":
    _run_unit_tests()
    print("timing_model.py: ok")
