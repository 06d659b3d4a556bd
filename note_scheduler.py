# -*- coding: utf-8 -*-
########################
# note_scheduler.py
########################
# Purpose:
# - Hold a Course's notes as an index-addressed arena with a parallel table of judgement state.
# - Provide the time-window queries the judge engine and the presenter need.
#
# Design notes:
# - Notes are immutable. All per-playthrough flags live in NoteState, one per note index.
# - Schedule order is the course order, which the compiler guarantees is ascending by time.
# - reset() clears the judgement table. No note object is ever mutated.
#
########################
# Interfaces:
# Public dataclasses:
# - NoteState(has_been_hit, has_been_judged, is_roll_active, is_balloon_active, is_balloon_popped,
#             is_balloon_timeout, judgement, judgement_delta_seconds)
# - ScheduledNote(index: int, note: Note, state: NoteState)
#
# Public classes:
# - class NoteScheduler
#   - __init__(course: Course)
#   - course() -> Course
#   - reset() -> None
#   - scheduled(index: int) -> ScheduledNote
#   - state(index: int) -> NoteState
#   - mark_judged(index: int, *, judgement: Optional[Judgement], delta_seconds: float, hit: bool) -> None
#   - visible_notes(*, song_time_seconds, lookback_seconds, lookahead_seconds, include_judged) -> list[ScheduledNote]
#   - hittable_notes_near(*, target_time_seconds, max_window_seconds) -> list[ScheduledNote]
#   - find_terminator_index(index: int) -> Optional[int]
#   - pending_specials(*, song_time_seconds, lead_seconds) -> list[ScheduledNote]
#   - unjudged_notes_past_miss_window(*, song_time_seconds, miss_window_seconds) -> list[ScheduledNote]
#
# Inputs:
# - Course and time parameters.
#
# Outputs:
# - ScheduledNote views for rendering and candidate selection for JudgeEngine.
#
########################

from __future__ import annotations

import bisect
from dataclasses import dataclass
from typing import List, Optional

from chart_models import Course, Judgement, Note, NoteType


@dataclass
class NoteState:
    has_been_hit: bool = False
    has_been_judged: bool = False
    is_roll_active: bool = False
    is_balloon_active: bool = False
    is_balloon_popped: bool = False
    is_balloon_timeout: bool = False
    judgement: Optional[Judgement] = None
    judgement_delta_seconds: Optional[float] = None


@dataclass(frozen=True)
class ScheduledNote:
    index: int
    note: Note
    state: NoteState


class NoteScheduler:
    def __init__(self, course: Course) -> None:
        self._course = course
        self._notes: List[Note] = list(course.notes)
        self._times: List[float] = [float(note.time) for note in self._notes]
        self._states: List[NoteState] = [NoteState() for _ in self._notes]
        # Everything before this index is judged; lets per-frame scans skip the past.
        self._first_open_index = 0

    def course(self) -> Course:
        return self._course

    def __len__(self) -> int:
        return len(self._notes)

    def reset(self) -> None:
        self._states = [NoteState() for _ in self._notes]
        self._first_open_index = 0

    def scheduled(self, index: int) -> ScheduledNote:
        return ScheduledNote(index=int(index), note=self._notes[index], state=self._states[index])

    def state(self, index: int) -> NoteState:
        return self._states[index]

    def mark_judged(
        self,
        index: int,
        *,
        judgement: Optional[Judgement],
        delta_seconds: float,
        hit: bool,
    ) -> None:
        state = self._states[index]
        state.has_been_judged = True
        if hit:
            state.has_been_hit = True
        state.judgement = judgement
        state.judgement_delta_seconds = float(delta_seconds)
        self._advance_first_open_index()

    def _advance_first_open_index(self) -> None:
        index = self._first_open_index
        while index < len(self._states) and self._states[index].has_been_judged:
            index += 1
        self._first_open_index = index

    def _index_range(self, start_time: float, end_time: float) -> range:
        start_index = bisect.bisect_left(self._times, float(start_time))
        end_index = bisect.bisect_right(self._times, float(end_time))
        return range(start_index, end_index)

    def visible_notes(
        self,
        *,
        song_time_seconds: float,
        lookback_seconds: float,
        lookahead_seconds: float,
        include_judged: bool = False,
        include_hit: bool = True,
    ) -> List[ScheduledNote]:
        start_time = float(song_time_seconds) - float(lookback_seconds)
        end_time = float(song_time_seconds) + float(lookahead_seconds)
        visible: List[ScheduledNote] = []
        for index in self._index_range(start_time, end_time):
            state = self._states[index]
            if not include_judged and state.has_been_judged:
                continue
            if not include_hit and state.has_been_hit:
                continue
            visible.append(self.scheduled(index))
        return visible

    def hittable_notes_near(
        self,
        *,
        target_time_seconds: float,
        max_window_seconds: float,
    ) -> List[ScheduledNote]:
        """Unjudged don/ka notes whose time lies within the window around target time."""
        target = float(target_time_seconds)
        window = float(max_window_seconds)
        candidates: List[ScheduledNote] = []
        for index in self._index_range(target - window, target + window):
            state = self._states[index]
            if state.has_been_judged:
                continue
            if self._notes[index].type.hit_class() is None:
                continue
            candidates.append(self.scheduled(index))
        return candidates

    def find_terminator_index(self, index: int) -> Optional[int]:
        for candidate_index in range(int(index) + 1, len(self._notes)):
            if self._notes[candidate_index].type is NoteType.ROLL_END:
                return candidate_index
        return None

    def pending_specials(self, *, song_time_seconds: float, lead_seconds: float) -> List[ScheduledNote]:
        """Roll and balloon starts reached by song time that have not been activated yet."""
        cutoff_time = float(song_time_seconds) + float(lead_seconds)
        end_index = bisect.bisect_right(self._times, cutoff_time)
        pending: List[ScheduledNote] = []
        for index in range(self._first_open_index, end_index):
            note = self._notes[index]
            state = self._states[index]
            if note.type.is_roll and not state.is_roll_active:
                pending.append(self.scheduled(index))
            elif note.type.is_balloon and not state.is_balloon_active:
                pending.append(self.scheduled(index))
        return pending

    def unjudged_notes_past_miss_window(
        self,
        *,
        song_time_seconds: float,
        miss_window_seconds: float,
    ) -> List[ScheduledNote]:
        """Every note of any type that is neither hit nor judged and lies past the miss window.
        Roll starts and terminators are never hit, so they always end up here."""
        cutoff_time = float(song_time_seconds) - float(miss_window_seconds)
        candidates: List[ScheduledNote] = []
        for index in range(self._first_open_index, len(self._notes)):
            note_time = self._times[index]
            if note_time >= cutoff_time:
                break
            state = self._states[index]
            if state.has_been_judged or state.has_been_hit:
                continue
            candidates.append(self.scheduled(index))
        return candidates


def _run_unit_tests() -> None:
    notes = [
        Note(time=0.5, type=NoteType.KA),
        Note(time=1.0, type=NoteType.DON),
        Note(time=1.0, type=NoteType.ROLL),
        Note(time=2.0, type=NoteType.ROLL_END),
    ]
    scheduler = NoteScheduler(Course(name="smoke", notes=notes))

    visible = scheduler.visible_notes(song_time_seconds=1.0, lookback_seconds=10.0, lookahead_seconds=10.0)
    assert [item.index for item in visible] == [0, 1, 2, 3]

    near = scheduler.hittable_notes_near(target_time_seconds=1.0, max_window_seconds=0.2)
    assert [item.index for item in near] == [1]

    assert scheduler.find_terminator_index(2) == 3

    misses = scheduler.unjudged_notes_past_miss_window(song_time_seconds=1.0, miss_window_seconds=0.15)
    assert [item.index for item in misses] == [0]

    scheduler.mark_judged(0, judgement=Judgement.MISS, delta_seconds=0.5, hit=False)
    assert scheduler.state(0).has_been_judged and not scheduler.state(0).has_been_hit
    scheduler.reset()
    assert not scheduler.state(0).has_been_judged


if __name__ == "__main__":
    _run_unit_tests()
    print("note_scheduler.py: ok")
