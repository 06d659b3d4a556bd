# -*- coding: utf-8 -*-
########################
# judge.py
########################
# Purpose:
# - Hit judgement and scoring engine.
# - Per frame: windowed visibility, preview auto-hits, roll and balloon activation and expiry,
#   projectile decay and automatic misses.
# - Per input: roll hits, balloon hits, then nearest matching don/ka note within the judge window.
#
# Design notes:
# - Single threaded and synchronous. advance() and handle_input() are interleaved on one thread.
# - Playback time drives judgement and rate limits. A wall clock drives cosmetic projectiles and
#   the judgement text expiry only.
# - SessionState owns the per-note judgement table; notes themselves are never mutated.
# - Invalid calls (no course, a course other than the one the session is bound to, unknown hit
#   type) raise ValueError.
#
########################
# Interfaces:
# Public enums:
# - class HitKind(enum.Enum): NOTE | STRAY | ROLL | BALLOON | BALLOON_POP | BALLOON_TIMEOUT | AUTO_MISS | AUTO_HIT
#
# Public dataclasses:
# - JudgementWindows(perfect_seconds, good_seconds, bad_seconds, miss_seconds)
#   - classify_delta(delta_seconds: float) -> Optional[Judgement]
# - JudgementEvent(time_seconds, kind, judgement, note_index, note_time_seconds, delta_seconds)
#
# Public classes:
# - class JudgeEngine
#   - __init__(session: SessionState, config: Optional[AppConfig] = None, *, clock=time.perf_counter, rng=None)
#   - session() -> SessionState
#   - judgement_windows() -> JudgementWindows
#   - note_speed() -> float
#   - set_note_speed(note_speed: float) -> None
#   - start(course: Course) -> None
#   - advance(course: Course, current_time: float, is_play_mode: bool) -> list[JudgementEvent]
#   - handle_input(hit_type: HitType | str, course: Course, current_time: float) -> Optional[JudgementEvent]
#
# Inputs:
# - Course (optionally branch-selected), playback seconds, discrete don/ka inputs.
#
# Outputs:
# - Mutated SessionState and JudgementEvent records.
#
########################

from __future__ import annotations

from dataclasses import dataclass
import enum
import logging
import random
import time
from typing import Callable, List, Optional, Union

from chart_models import Course, HitType, Judgement
from config import AppConfig, JudgeWindowConfig
from hit_effects import (
    spawn_balloon_hit_projectile,
    spawn_hit_projectile,
    spawn_miss_projectile,
    update_projectiles,
)
from note_scheduler import NoteScheduler
from session_state import ActiveBalloon, ActiveRoll, ScoreWeights, SessionState
from timing_model import position_of
from tja_compiler import balloon_hits_for


logger = logging.getLogger(__name__)

# Absorbs binary rounding of decimal timestamps at window edges.
_EPSILON = 1e-9


class HitKind(enum.Enum):
    NOTE = "note"
    STRAY = "stray"
    ROLL = "roll"
    BALLOON = "balloon"
    BALLOON_POP = "balloon_pop"
    BALLOON_TIMEOUT = "balloon_timeout"
    AUTO_MISS = "auto_miss"
    AUTO_HIT = "auto_hit"


@dataclass(frozen=True)
class JudgementWindows:
    perfect_seconds: float = 0.05
    good_seconds: float = 0.10
    bad_seconds: float = 0.15
    miss_seconds: float = 0.15

    @classmethod
    def from_config(cls, window_config: JudgeWindowConfig) -> "JudgementWindows":
        return cls(
            perfect_seconds=float(window_config.perfect_ms) / 1000.0,
            good_seconds=float(window_config.good_ms) / 1000.0,
            bad_seconds=float(window_config.bad_ms) / 1000.0,
            miss_seconds=float(window_config.miss_ms) / 1000.0,
        )

    def classify_delta(self, delta_seconds: float) -> Optional[Judgement]:
        abs_delta = abs(float(delta_seconds))
        if abs_delta <= self.perfect_seconds + _EPSILON:
            return Judgement.PERFECT
        if abs_delta <= self.good_seconds + _EPSILON:
            return Judgement.GOOD
        if abs_delta <= self.bad_seconds + _EPSILON:
            return Judgement.BAD
        return None


@dataclass(frozen=True)
class JudgementEvent:
    time_seconds: float
    kind: HitKind
    judgement: Optional[Judgement] = None
    note_index: Optional[int] = None
    note_time_seconds: Optional[float] = None
    delta_seconds: Optional[float] = None


def _coerce_hit_type(hit_type: Union[HitType, str]) -> HitType:
    if isinstance(hit_type, HitType):
        return hit_type
    try:
        return HitType(str(hit_type).strip().lower())
    except ValueError:
        raise ValueError(f"Unsupported hit type: {hit_type!r}. Allowed: don, ka") from None


class JudgeEngine:
    def __init__(
        self,
        session: SessionState,
        config: Optional[AppConfig] = None,
        *,
        clock: Callable[[], float] = time.perf_counter,
        rng: Optional[random.Random] = None,
    ) -> None:
        if session is None:
            raise ValueError("session is required")
        app_config = config if config is not None else AppConfig()
        self._session = session
        self._judgement_windows = JudgementWindows.from_config(app_config.judge_windows)
        self._playfield = app_config.playfield
        self._specials = app_config.special_notes
        self._note_speed = float(app_config.playfield.note_speed)
        self._clock = clock
        self._rng = rng if rng is not None else random.Random()

        scoring = app_config.scoring
        self._session.set_score_weights(
            ScoreWeights(
                perfect_points=scoring.perfect_points,
                good_points=scoring.good_points,
                bad_points=scoring.bad_points,
                combo_bonus_per_hit=scoring.combo_bonus_per_hit,
            )
        )

    def session(self) -> SessionState:
        return self._session

    def judgement_windows(self) -> JudgementWindows:
        return self._judgement_windows

    def note_speed(self) -> float:
        return float(self._note_speed)

    def set_note_speed(self, note_speed: float) -> None:
        value = float(note_speed)
        if value <= 0.0:
            raise ValueError(f"note_speed must be positive, got {note_speed!r}")
        self._note_speed = value

    def start(self, course: Course) -> None:
        """Begin a fresh playthrough of course, clearing all session and judgement state."""
        self._session.begin(course)

    def _schedule_for(self, course: Course) -> NoteScheduler:
        if course is None:
            raise ValueError("JudgeEngine requires a compiled course")
        session = self._session
        if session.course is None or session.schedule is None:
            session.begin(course)
        elif session.course is not course:
            raise ValueError(
                f"Session is bound to course {session.course.name!r}; call start(course) to switch courses"
            )
        return session.schedule

    def _scroll_speed(self) -> float:
        return float(self._playfield.scroll_pixels_per_second) * self._note_speed

    # Per frame

    def advance(self, course: Course, current_time: float, is_play_mode: bool) -> List[JudgementEvent]:
        schedule = self._schedule_for(course)
        session = self._session
        song_time = float(current_time)
        events: List[JudgementEvent] = []

        look_behind = float(self._playfield.look_behind_seconds)
        look_ahead = float(self._playfield.look_ahead_seconds) * self._note_speed

        session.visible_notes = schedule.visible_notes(
            song_time_seconds=song_time,
            lookback_seconds=look_behind,
            lookahead_seconds=look_ahead,
            include_judged=not is_play_mode,
            include_hit=is_play_mode,
        )
        session.measure_lines = [
            measure_line
            for measure_line in course.measure_lines
            if song_time - look_behind <= measure_line.time <= song_time + look_ahead
        ]

        if is_play_mode:
            self._update_active_specials(course, schedule, song_time, events)
        else:
            self._auto_hit(course, schedule, song_time, events)

        now = self._clock()
        session.hit_notes = update_projectiles(session.hit_notes, now)
        session.expire_judge_text(now)

        if is_play_mode:
            self._check_missed_notes(schedule, song_time, events)

        return events

    def _auto_hit(self, course: Course, schedule: NoteScheduler, song_time: float, events: List[JudgementEvent]) -> None:
        hit_window = float(self._playfield.auto_hit_window_seconds) / self._note_speed
        candidates = schedule.visible_notes(
            song_time_seconds=song_time,
            lookback_seconds=hit_window,
            lookahead_seconds=hit_window,
            include_judged=True,
            include_hit=False,
        )
        for scheduled_note in candidates:
            scheduled_note.state.has_been_hit = True
            self._spawn_note_projectile(course, scheduled_note.note.type, scheduled_note.note.time, song_time)
            events.append(
                JudgementEvent(
                    time_seconds=song_time,
                    kind=HitKind.AUTO_HIT,
                    note_index=scheduled_note.index,
                    note_time_seconds=float(scheduled_note.note.time),
                    delta_seconds=song_time - float(scheduled_note.note.time),
                )
            )

    def _update_active_specials(
        self,
        course: Course,
        schedule: NoteScheduler,
        song_time: float,
        events: List[JudgementEvent],
    ) -> None:
        session = self._session

        for scheduled_note in schedule.pending_specials(
            song_time_seconds=song_time,
            lead_seconds=float(self._specials.activation_lead_seconds),
        ):
            end_index = schedule.find_terminator_index(scheduled_note.index)
            if end_index is None:
                continue
            end_time = float(schedule.scheduled(end_index).note.time)
            note = scheduled_note.note

            if note.type.is_roll:
                session.active_rolls.append(
                    ActiveRoll(
                        handle=session.next_handle(),
                        note_index=scheduled_note.index,
                        start_time=float(note.time),
                        end_time=end_time,
                        note_type=note.type,
                    )
                )
                scheduled_note.state.is_roll_active = True
            else:
                required_hits = balloon_hits_for(
                    course,
                    scheduled_note.index,
                    default=int(self._specials.default_balloon_hits),
                )
                session.active_balloons.append(
                    ActiveBalloon(
                        handle=session.next_handle(),
                        note_index=scheduled_note.index,
                        start_time=float(note.time),
                        end_time=end_time,
                        required_hits=required_hits,
                    )
                )
                scheduled_note.state.is_balloon_active = True

        remaining_rolls: List[ActiveRoll] = []
        for roll in session.active_rolls:
            if song_time >= roll.end_time:
                logger.debug(
                    "roll %d at %.3fs finished with %d hits",
                    roll.handle,
                    roll.start_time,
                    session.roll_hit_counts.get(roll.handle, 0),
                )
                continue
            remaining_rolls.append(roll)
        session.active_rolls = remaining_rolls

        remaining_balloons: List[ActiveBalloon] = []
        for balloon in session.active_balloons:
            if balloon.is_popped:
                continue
            if song_time >= balloon.end_time:
                self._time_out_balloon(balloon, schedule, song_time, events)
                continue
            remaining_balloons.append(balloon)
        session.active_balloons = remaining_balloons

    def _time_out_balloon(
        self,
        balloon: ActiveBalloon,
        schedule: NoteScheduler,
        song_time: float,
        events: List[JudgementEvent],
    ) -> None:
        session = self._session
        schedule.state(balloon.note_index).is_balloon_timeout = True
        schedule.mark_judged(
            balloon.note_index,
            judgement=None,
            delta_seconds=song_time - balloon.start_time,
            hit=False,
        )
        note_type = schedule.scheduled(balloon.note_index).note.type
        session.hit_notes.append(
            spawn_miss_projectile(
                note_type,
                float(self._playfield.judge_line_x),
                float(self._playfield.hit_effect_y),
                self._clock(),
                self._rng,
            )
        )
        logger.debug(
            "balloon %d at %.3fs timed out with %d/%d hits",
            balloon.handle,
            balloon.start_time,
            session.balloon_hit_counts.get(balloon.handle, 0),
            balloon.required_hits,
        )
        events.append(
            JudgementEvent(
                time_seconds=song_time,
                kind=HitKind.BALLOON_TIMEOUT,
                note_index=balloon.note_index,
                note_time_seconds=balloon.start_time,
                delta_seconds=song_time - balloon.start_time,
            )
        )

    def _check_missed_notes(self, schedule: NoteScheduler, song_time: float, events: List[JudgementEvent]) -> None:
        candidates = schedule.unjudged_notes_past_miss_window(
            song_time_seconds=song_time,
            miss_window_seconds=self._judgement_windows.miss_seconds,
        )
        for scheduled_note in candidates:
            note_time = float(scheduled_note.note.time)
            delta = song_time - note_time
            schedule.mark_judged(scheduled_note.index, judgement=Judgement.MISS, delta_seconds=delta, hit=False)
            self._session.score_state.apply_judgement(Judgement.MISS)
            events.append(
                JudgementEvent(
                    time_seconds=song_time,
                    kind=HitKind.AUTO_MISS,
                    judgement=Judgement.MISS,
                    note_index=scheduled_note.index,
                    note_time_seconds=note_time,
                    delta_seconds=delta,
                )
            )

    # Per input

    def handle_input(
        self,
        hit_type: Union[HitType, str],
        course: Course,
        current_time: float,
    ) -> Optional[JudgementEvent]:
        input_type = _coerce_hit_type(hit_type)
        schedule = self._schedule_for(course)
        song_time = float(current_time)

        for roll in self._session.active_rolls:
            if self._can_hit(roll.handle, song_time, self._specials.roll_hit_interval_ms):
                return self._hit_roll(roll, song_time)

        for balloon in self._session.active_balloons:
            if balloon.is_popped:
                continue
            if self._can_hit(balloon.handle, song_time, self._specials.balloon_hit_interval_ms):
                return self._hit_balloon(balloon, schedule, song_time)

        return self._hit_note(input_type, course, schedule, song_time)

    def _can_hit(self, handle: int, song_time: float, interval_ms: float) -> bool:
        last_hit_time = self._session.last_roll_hit_time.get(handle)
        if last_hit_time is None:
            return True
        return song_time - last_hit_time + _EPSILON >= float(interval_ms) / 1000.0

    def _hit_roll(self, roll: ActiveRoll, song_time: float) -> JudgementEvent:
        session = self._session
        session.roll_hit_counts[roll.handle] = session.roll_hit_counts.get(roll.handle, 0) + 1
        session.last_roll_hit_time[roll.handle] = song_time
        session.score_state.add_points(int(self._specials.roll_hit_points))

        now = self._clock()
        session.show_judge_text("ROLL", now)
        session.hit_notes.append(
            spawn_hit_projectile(
                roll.note_type,
                float(self._playfield.judge_line_x),
                float(self._playfield.hit_effect_y),
                now,
            )
        )
        return JudgementEvent(
            time_seconds=song_time,
            kind=HitKind.ROLL,
            note_index=roll.note_index,
            note_time_seconds=roll.start_time,
            delta_seconds=song_time - roll.start_time,
        )

    def _hit_balloon(self, balloon: ActiveBalloon, schedule: NoteScheduler, song_time: float) -> JudgementEvent:
        session = self._session
        hit_count = session.balloon_hit_counts.get(balloon.handle, 0) + 1
        session.balloon_hit_counts[balloon.handle] = hit_count
        session.last_roll_hit_time[balloon.handle] = song_time
        session.score_state.add_points(int(self._specials.balloon_hit_points))

        now = self._clock()
        judge_line_x = float(self._playfield.judge_line_x)
        effect_y = float(self._playfield.hit_effect_y)
        kind = HitKind.BALLOON

        if hit_count >= balloon.required_hits:
            balloon.is_popped = True
            session.score_state.add_points(int(self._specials.balloon_pop_bonus))
            session.show_judge_text("POP", now)
            session.active_balloons = [item for item in session.active_balloons if item is not balloon]

            schedule.state(balloon.note_index).is_balloon_popped = True
            schedule.mark_judged(
                balloon.note_index,
                judgement=None,
                delta_seconds=song_time - balloon.start_time,
                hit=True,
            )
            note_type = schedule.scheduled(balloon.note_index).note.type
            session.hit_notes.append(spawn_hit_projectile(note_type, judge_line_x, effect_y, now))
            kind = HitKind.BALLOON_POP
        else:
            session.show_judge_text(f"BALLOON {hit_count}/{balloon.required_hits}", now)
            session.hit_notes.append(spawn_balloon_hit_projectile(judge_line_x, effect_y, now))

        return JudgementEvent(
            time_seconds=song_time,
            kind=kind,
            note_index=balloon.note_index,
            note_time_seconds=balloon.start_time,
            delta_seconds=song_time - balloon.start_time,
        )

    def _hit_note(
        self,
        input_type: HitType,
        course: Course,
        schedule: NoteScheduler,
        song_time: float,
    ) -> Optional[JudgementEvent]:
        session = self._session
        nearby = schedule.hittable_notes_near(
            target_time_seconds=song_time,
            max_window_seconds=self._judgement_windows.bad_seconds + _EPSILON,
        )
        if not nearby:
            return None

        closest = None
        closest_distance = 0.0
        for scheduled_note in nearby:
            if scheduled_note.note.type.hit_class() is not input_type:
                continue
            distance = abs(float(scheduled_note.note.time) - song_time)
            # Earlier note wins when equidistant.
            if closest is None or distance < closest_distance:
                closest = scheduled_note
                closest_distance = distance

        now = self._clock()
        if closest is None:
            session.score_state.apply_judgement(Judgement.MISS)
            session.show_judge_text(Judgement.MISS.value, now)
            return JudgementEvent(time_seconds=song_time, kind=HitKind.STRAY, judgement=Judgement.MISS)

        note_time = float(closest.note.time)
        delta = song_time - note_time
        judgement = self._judgement_windows.classify_delta(delta)
        if judgement is None:
            judgement = Judgement.BAD

        session.score_state.apply_judgement(judgement)
        session.show_judge_text(judgement.value, now)
        schedule.mark_judged(closest.index, judgement=judgement, delta_seconds=delta, hit=True)
        self._spawn_note_projectile(course, closest.note.type, note_time, song_time)

        return JudgementEvent(
            time_seconds=song_time,
            kind=HitKind.NOTE,
            judgement=judgement,
            note_index=closest.index,
            note_time_seconds=note_time,
            delta_seconds=delta,
        )

    def _spawn_note_projectile(self, course: Course, note_type, note_time: float, song_time: float) -> None:
        x = position_of(
            note_time,
            song_time,
            self._scroll_speed(),
            course,
            float(self._playfield.judge_line_x),
        )
        self._session.hit_notes.append(
            spawn_hit_projectile(note_type, x, float(self._playfield.hit_effect_y), self._clock())
        )


def _run_unit_tests() -> None:
    from chart_models import Note, NoteType

    course = Course(
        name="smoke",
        notes=[Note(time=1.0, type=NoteType.DON), Note(time=2.0, type=NoteType.KA)],
    )
    session = SessionState()
    engine = JudgeEngine(session, clock=lambda: 0.0)
    engine.start(course)

    hit = engine.handle_input("don", course, 1.0)
    assert hit is not None and hit.judgement is Judgement.PERFECT
    assert session.score == 1010

    stray = engine.handle_input("don", course, 1.5)
    assert stray is None

    events = engine.advance(course, 2.5, True)
    assert [event.kind for event in events] == [HitKind.AUTO_MISS]
    assert session.hit_count["miss"] == 1 and session.combo == 0


if __name__ == "__main__":
    _run_unit_tests()
    print("judge.py: ok")
