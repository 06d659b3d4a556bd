# -*- coding: utf-8 -*-
########################
# hit_effects.py
########################
# Purpose:
# - Transient projectiles spawned by the judge engine on hits, balloon hits and balloon timeouts.
# - Wall-clock physics integration and expiry.
#
# Design notes:
# - Purely cosmetic. Driven by a wall clock, never by playback time.
# - Velocities are expressed per 16 ms frame step (FRAME_SCALE) to keep effect tuning values stable.
# - A projectile is dropped once its opacity reaches zero or it leaves the effect region.
#
########################
# Interfaces:
# Public dataclasses:
# - HitProjectile(note_type, x, y, vx, vy, gravity, opacity, fade_speed, spawned_at, updated_at)
#   - step(now: float) -> None
#   - is_alive() -> bool
#
# Public functions:
# - spawn_hit_projectile(note_type, x, y, now) -> HitProjectile
# - spawn_balloon_hit_projectile(x, y, now) -> HitProjectile
# - spawn_miss_projectile(note_type, x, y, now, rng) -> HitProjectile
# - update_projectiles(projectiles, now) -> list[HitProjectile]
#
########################

from __future__ import annotations

from dataclasses import dataclass
import random
from typing import Iterable, List

from chart_models import NoteType


FRAME_SCALE = 0.016

MIN_VISIBLE_X = -100.0
MAX_VISIBLE_Y = 300.0


@dataclass
class HitProjectile:
    note_type: NoteType
    x: float
    y: float
    vx: float
    vy: float
    gravity: float
    opacity: float
    fade_speed: float
    spawned_at: float
    updated_at: float

    def step(self, now: float) -> None:
        delta_seconds = max(0.0, float(now) - float(self.updated_at))
        scaled = delta_seconds * FRAME_SCALE
        self.x += self.vx * scaled
        self.y += self.vy * scaled
        self.vy += self.gravity * scaled
        self.opacity -= self.fade_speed * scaled
        self.updated_at = float(now)

    def is_alive(self) -> bool:
        return self.opacity > 0.0 and self.x > MIN_VISIBLE_X and self.y < MAX_VISIBLE_Y


def spawn_hit_projectile(note_type: NoteType, x: float, y: float, now: float) -> HitProjectile:
    return HitProjectile(
        note_type=note_type,
        x=float(x),
        y=float(y),
        vx=-400.0 - 0.8 * 80000.0,
        vy=-300.0 - 0.8 * 56000.0,
        gravity=600.0,
        opacity=1.0,
        fade_speed=20.0,
        spawned_at=float(now),
        updated_at=float(now),
    )


def spawn_balloon_hit_projectile(x: float, y: float, now: float) -> HitProjectile:
    return HitProjectile(
        note_type=NoteType.BALLOON,
        x=float(x),
        y=float(y),
        vx=0.0,
        vy=-50.0,
        gravity=200.0,
        opacity=1.0,
        fade_speed=500.0,
        spawned_at=float(now),
        updated_at=float(now),
    )


def spawn_miss_projectile(
    note_type: NoteType,
    x: float,
    y: float,
    now: float,
    rng: random.Random,
) -> HitProjectile:
    return HitProjectile(
        note_type=note_type,
        x=float(x),
        y=float(y),
        vx=-300.0 - rng.random() * 200.0,
        vy=-200.0 - rng.random() * 100.0,
        gravity=600.0,
        opacity=0.7,
        fade_speed=2.0,
        spawned_at=float(now),
        updated_at=float(now),
    )


def update_projectiles(projectiles: Iterable[HitProjectile], now: float) -> List[HitProjectile]:
    alive: List[HitProjectile] = []
    for projectile in projectiles:
        projectile.step(now)
        if projectile.is_alive():
            alive.append(projectile)
    return alive
