import unittest

from chart_models import Course, Judgement, Note, NoteType
from note_scheduler import NoteScheduler


class TestNoteScheduler(unittest.TestCase):
    def setUp(self):
        self.notes = [
            Note(time=0.5, type=NoteType.KA),
            Note(time=1.0, type=NoteType.DON),
            Note(time=1.0, type=NoteType.ROLL),
            Note(time=2.0, type=NoteType.ROLL_END),
            Note(time=3.0, type=NoteType.BALLOON),
            Note(time=4.0, type=NoteType.ROLL_END),
        ]
        self.scheduler = NoteScheduler(Course(name="sched", notes=self.notes))

    def test_visible_notes_window(self):
        visible = self.scheduler.visible_notes(
            song_time_seconds=1.0,
            lookback_seconds=0.5,
            lookahead_seconds=1.0,
        )

        self.assertEqual([item.index for item in visible], [0, 1, 2, 3])

    def test_judged_notes_are_hidden_unless_requested(self):
        self.scheduler.mark_judged(0, judgement=Judgement.MISS, delta_seconds=0.2, hit=False)

        hidden = self.scheduler.visible_notes(song_time_seconds=0.5, lookback_seconds=0.1, lookahead_seconds=0.1)
        shown = self.scheduler.visible_notes(
            song_time_seconds=0.5,
            lookback_seconds=0.1,
            lookahead_seconds=0.1,
            include_judged=True,
        )

        self.assertEqual(hidden, [])
        self.assertEqual([item.index for item in shown], [0])

    def test_hittable_notes_exclude_specials(self):
        near = self.scheduler.hittable_notes_near(target_time_seconds=1.0, max_window_seconds=0.6)

        self.assertEqual([item.index for item in near], [0, 1])

    def test_terminator_lookup(self):
        self.assertEqual(self.scheduler.find_terminator_index(2), 3)
        self.assertEqual(self.scheduler.find_terminator_index(4), 5)
        self.assertIsNone(self.scheduler.find_terminator_index(5))

    def test_pending_specials_use_activation_lead(self):
        pending = self.scheduler.pending_specials(song_time_seconds=0.95, lead_seconds=0.1)
        self.assertEqual([item.index for item in pending], [2])

        self.scheduler.state(2).is_roll_active = True
        pending = self.scheduler.pending_specials(song_time_seconds=2.95, lead_seconds=0.1)
        self.assertEqual([item.index for item in pending], [4])

    def test_miss_candidates_cover_every_note_type(self):
        candidates = self.scheduler.unjudged_notes_past_miss_window(
            song_time_seconds=10.0,
            miss_window_seconds=0.15,
        )

        self.assertEqual([item.index for item in candidates], [0, 1, 2, 3, 4, 5])

    def test_hit_notes_are_not_miss_candidates(self):
        self.scheduler.state(0).has_been_hit = True

        candidates = self.scheduler.unjudged_notes_past_miss_window(
            song_time_seconds=10.0,
            miss_window_seconds=0.15,
        )

        self.assertEqual([item.index for item in candidates], [1, 2, 3, 4, 5])

    def test_popped_balloon_is_not_a_miss_candidate(self):
        self.scheduler.mark_judged(4, judgement=None, delta_seconds=0.0, hit=True)

        candidates = self.scheduler.unjudged_notes_past_miss_window(
            song_time_seconds=3.5,
            miss_window_seconds=0.15,
        )

        self.assertEqual([item.index for item in candidates], [0, 1, 2, 3])

    def test_reset_restores_fresh_states(self):
        self.scheduler.mark_judged(1, judgement=Judgement.PERFECT, delta_seconds=0.0, hit=True)
        self.assertTrue(self.scheduler.state(1).has_been_hit)

        self.scheduler.reset()

        self.assertFalse(self.scheduler.state(1).has_been_hit)
        self.assertEqual(self.notes[1], self.scheduler.scheduled(1).note)


if __name__ == "__main__":
    unittest.main()
