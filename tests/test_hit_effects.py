import random
import unittest

from chart_models import NoteType
from hit_effects import (
    spawn_balloon_hit_projectile,
    spawn_hit_projectile,
    spawn_miss_projectile,
    update_projectiles,
)


class TestHitProjectiles(unittest.TestCase):
    def test_hit_projectile_integrates_from_wall_clock(self):
        projectile = spawn_hit_projectile(NoteType.DON, 120.0, 100.0, 5.0)

        projectile.step(5.1)

        self.assertAlmostEqual(projectile.x, 120.0 - 64400.0 * 0.0016)
        self.assertAlmostEqual(projectile.y, 100.0 - 45100.0 * 0.0016)
        self.assertAlmostEqual(projectile.vy, -45100.0 + 600.0 * 0.0016)
        self.assertAlmostEqual(projectile.opacity, 1.0 - 20.0 * 0.0016)
        self.assertTrue(projectile.is_alive())

    def test_projectile_leaving_the_field_is_dropped(self):
        projectile = spawn_hit_projectile(NoteType.KA, 120.0, 100.0, 0.0)

        self.assertEqual(update_projectiles([projectile], 1.0), [])

    def test_balloon_feedback_fades_quickly(self):
        projectile = spawn_balloon_hit_projectile(120.0, 100.0, 0.0)

        self.assertEqual(update_projectiles([projectile], 0.05), [projectile])
        self.assertEqual(update_projectiles([projectile], 0.2), [])

    def test_miss_projectile_uses_injected_randomness(self):
        first = spawn_miss_projectile(NoteType.BALLOON, 120.0, 100.0, 0.0, random.Random(3))
        second = spawn_miss_projectile(NoteType.BALLOON, 120.0, 100.0, 0.0, random.Random(3))

        self.assertEqual(first.vx, second.vx)
        self.assertTrue(-500.0 <= first.vx <= -300.0)
        self.assertTrue(-300.0 <= first.vy <= -200.0)
        self.assertAlmostEqual(first.opacity, 0.7)

    def test_step_ignores_backwards_clock(self):
        projectile = spawn_balloon_hit_projectile(0.0, 0.0, 1.0)

        projectile.step(0.5)

        self.assertEqual(projectile.y, 0.0)
        self.assertEqual(projectile.opacity, 1.0)


if __name__ == "__main__":
    unittest.main()
