import unittest

from chart_models import Course, Note, NoteType
from demo_chart import build_demo_chart_text
from tja_compiler import (
    TimelineCursor,
    balloon_hits_for,
    compile_chart,
    compile_courses,
    merge_branch_end,
    parse_balloon_counts,
    select_branch,
)


def _chart(*lines):
    return "\n".join(lines) + "\n"


BRANCH_CHART = _chart(
    "BPM:120",
    "COURSE:Oni",
    "#START",
    "1,",
    "#BRANCHSTART p,1,2",
    "#N",
    "1,",
    "#E",
    "11,",
    "#M",
    "1111,",
    "1111,",
    "#BRANCHEND",
    "2,",
    "#END",
)


class TestNoteTiming(unittest.TestCase):
    def test_even_subdivision_at_150_bpm(self):
        course = compile_courses(_chart("BPM:150", "#START", "1111,", "#END"))[0]

        self.assertEqual([note.type for note in course.notes], [NoteType.DON] * 4)
        for index, note in enumerate(course.notes):
            self.assertAlmostEqual(note.time, index * 0.1)
        self.assertAlmostEqual(course.total_time, 4.3)

    def test_zero_characters_are_rests(self):
        course = compile_courses(_chart("BPM:120", "#START", "1020,", "#END"))[0]

        self.assertEqual([note.type for note in course.notes], [NoteType.DON, NoteType.KA])
        self.assertAlmostEqual(course.notes[1].time, 1.0)

    def test_empty_row_advances_one_measure(self):
        course = compile_courses(_chart("BPM:120", "#START", ",", "1,", "#END"))[0]

        self.assertEqual(len(course.notes), 1)
        self.assertAlmostEqual(course.notes[0].time, 2.0)
        self.assertEqual(course.notes[0].measure, 1)
        self.assertEqual(len(course.measure_lines), 2)

    def test_bpm_change_applies_from_next_row(self):
        course = compile_courses(_chart("BPM:120", "#START", "1,", "#BPMCHANGE 240", "11,", "1,", "#END"))[0]

        times = [note.time for note in course.notes]
        self.assertEqual(len(times), 4)
        self.assertAlmostEqual(times[1], 2.0)
        self.assertAlmostEqual(times[2], 2.5)
        self.assertAlmostEqual(times[3], 3.0)
        self.assertEqual(course.notes[1].bpm, 240.0)
        self.assertEqual(course.bpm, 240.0)

    def test_measure_signature_changes_measure_length(self):
        course = compile_courses(_chart("BPM:120", "#START", "#MEASURE 3/4", "1,", "1,", "#END"))[0]

        self.assertAlmostEqual(course.notes[1].time, 1.5)
        self.assertEqual(course.measure_signature.numerator, 3)

    def test_offset_shifts_the_timeline(self):
        course = compile_courses(_chart("BPM:120", "OFFSET:-1.5", "#START", "1,", "#END"))[0]

        self.assertAlmostEqual(course.offset, -1.5)
        self.assertAlmostEqual(course.notes[0].time, 1.5)

    def test_lone_balloon_and_terminator_rows_only_advance(self):
        course = compile_courses(_chart("BPM:120", "#START", "1,", "7,", "8,", "1,", "#END"))[0]

        self.assertEqual(len(course.notes), 2)
        self.assertAlmostEqual(course.notes[1].time, 6.0)
        self.assertEqual(len(course.measure_lines), 4)

    def test_gogo_flag_is_carried_per_note(self):
        course = compile_courses(_chart("#START", "#GOGOSTART", "1,", "#GOGOEND", "1,", "#END"))[0]

        self.assertEqual([note.gogo for note in course.notes], [True, False])

    def test_scroll_change_is_recorded_at_current_time(self):
        course = compile_courses(_chart("BPM:120", "#START", "1,", "#SCROLL 2.0", "1,", "#END"))[0]

        self.assertEqual(len(course.scroll_changes), 1)
        self.assertAlmostEqual(course.scroll_changes[0].time, 2.0)
        self.assertEqual(course.scroll_changes[0].scroll_speed, 2.0)

    def test_notes_are_sorted_after_branch_regions(self):
        course = select_branch(compile_courses(BRANCH_CHART)[0], "master")

        times = [note.time for note in course.notes]
        self.assertEqual(times, sorted(times))
        line_times = [line.time for line in course.measure_lines]
        self.assertEqual(line_times, sorted(line_times))


class TestCoursesAndMetadata(unittest.TestCase):
    def test_multiple_courses_share_global_metadata(self):
        result = compile_chart(
            _chart(
                "TITLE:Two Courses",
                "BPM:120",
                "COURSE:Easy",
                "LEVEL:2",
                "#START",
                "1,",
                "#END",
                "COURSE:Oni",
                "LEVEL:9",
                "#START",
                "11,",
                "#END",
            )
        )

        self.assertEqual([course.name for course in result.courses], ["Easy", "Oni"])
        oni = result.course("oni")
        self.assertIsNotNone(oni)
        self.assertEqual(oni.metadata["TITLE"], "Two Courses")
        self.assertEqual(oni.metadata["LEVEL"], "9")
        self.assertEqual(len(oni.notes), 2)

    def test_start_without_course_uses_unknown_name(self):
        result = compile_chart("\ufeffBPM:120\n#START\n1,\n#END\n")

        self.assertEqual(result.courses[0].name, "Unknown")
        self.assertEqual(result.courses[0].bpm, 120.0)

    def test_course_without_start_is_dropped_with_warning(self):
        result = compile_chart(_chart("COURSE:Easy", "LEVEL:1", "COURSE:Oni", "#START", "1,", "#END"))

        self.assertEqual([course.name for course in result.courses], ["Oni"])
        self.assertEqual(len(result.warnings), 1)
        self.assertIn("dropped", result.warnings[0].message)

    def test_chart_without_start_yields_no_courses(self):
        self.assertEqual(compile_courses(_chart("TITLE:Nothing", "BPM:120")), [])

    def test_missing_end_still_emits_course(self):
        courses = compile_courses(_chart("#START", "1,"))

        self.assertEqual(len(courses), 1)
        self.assertEqual(len(courses[0].notes), 1)

    def test_course_without_notes_has_zero_total_time(self):
        course = compile_courses(_chart("#START", ",", "#END"))[0]

        self.assertEqual(course.total_time, 0.0)


class TestWarnings(unittest.TestCase):
    def test_malformed_directives_keep_previous_state(self):
        result = compile_chart(
            _chart("BPM:120", "#START", "#BPMCHANGE fast", "#MEASURE 0/4", "#SCROLL x", "1,", "1,", "#END")
        )

        course = result.courses[0]
        self.assertEqual(course.notes[0].bpm, 120.0)
        self.assertAlmostEqual(course.notes[1].time, 2.0)
        self.assertEqual(course.scroll_changes, [])
        self.assertEqual(len(result.warnings), 3)

    def test_unsupported_directive_is_reported(self):
        result = compile_chart(_chart("#START", "#DELAY 1.0", "1,", "#END"))

        self.assertEqual(len(result.courses[0].notes), 1)
        self.assertEqual(len(result.warnings), 1)
        self.assertIn("#DELAY", result.warnings[0].message)
        self.assertEqual(result.warnings[0].line_number, 2)

    def test_row_without_terminator_is_reported(self):
        result = compile_chart(_chart("#START", "1111", "1,", "#END"))

        self.assertEqual(len(result.courses[0].notes), 1)
        self.assertEqual(len(result.warnings), 1)

    def test_comments_are_ignored(self):
        result = compile_chart(_chart("// header comment", "#START", "11, // trailing", "#END"))

        self.assertEqual(len(result.courses[0].notes), 2)
        self.assertEqual(result.warnings, [])

    def test_demo_chart_compiles_cleanly(self):
        result = compile_chart(build_demo_chart_text())

        self.assertEqual(result.warnings, [])
        self.assertEqual([course.name for course in result.courses], ["Oni"])
        course = result.courses[0]
        self.assertTrue(course.has_branch)
        self.assertTrue(any(note.type is NoteType.BALLOON for note in course.notes))
        self.assertGreater(course.total_time, 0.0)


class TestBranches(unittest.TestCase):
    def setUp(self):
        self.course = compile_courses(BRANCH_CHART)[0]

    def test_branch_content_is_kept_out_of_main_timeline(self):
        course = self.course

        self.assertTrue(course.has_branch)
        self.assertEqual([note.type for note in course.notes], [NoteType.DON, NoteType.KA])
        self.assertEqual(len(course.branches["normal"].notes), 1)
        self.assertEqual(len(course.branches["easy"].notes), 2)
        self.assertEqual(len(course.branches["master"].notes), 8)

    def test_main_timeline_resumes_after_longest_branch(self):
        ka_note = self.course.notes[-1]

        self.assertAlmostEqual(ka_note.time, 6.0)
        self.assertEqual(ka_note.measure, 3)

    def test_every_branch_starts_at_region_start(self):
        for name in ("easy", "normal", "master"):
            self.assertAlmostEqual(self.course.branches[name].notes[0].time, 2.0)

    def test_select_branch_merges_only_the_named_branch(self):
        master = select_branch(self.course, "master")
        easy = select_branch(master, "easy")

        self.assertEqual(master.selected_branch, "master")
        self.assertEqual(len(master.notes), 10)
        self.assertEqual(easy.selected_branch, "easy")
        self.assertEqual(len(easy.notes), 4)
        self.assertIsNone(self.course.selected_branch)
        self.assertEqual(len(self.course.notes), 2)

    def test_select_branch_is_idempotent(self):
        once = select_branch(self.course, "normal")
        twice = select_branch(once, "normal")

        self.assertEqual(once.notes, twice.notes)
        self.assertEqual(once.measure_lines, twice.measure_lines)
        self.assertAlmostEqual(once.total_time, twice.total_time)

    def test_select_branch_rejects_unknown_names(self):
        with self.assertRaises(ValueError):
            select_branch(self.course, "expert")

    def test_merge_branch_end_takes_latest_branch(self):
        start = TimelineCursor(time=1.0, measure=1, bpm=120.0)
        ends = {
            "normal": TimelineCursor(time=3.0, measure=2, bpm=120.0),
            "master": TimelineCursor(time=5.0, measure=3, bpm=200.0, gogo=True),
        }

        merged = merge_branch_end(start, ends)

        self.assertEqual(merged.time, 5.0)
        self.assertEqual(merged.measure, 3)
        self.assertEqual(merged.bpm, 200.0)
        self.assertTrue(merged.gogo)
        self.assertEqual(start.time, 1.0)

    def test_merge_branch_end_without_content_returns_start(self):
        start = TimelineCursor(time=1.0, measure=1)

        self.assertIs(merge_branch_end(start, {}), start)


class TestBalloonCounts(unittest.TestCase):
    def test_parse_balloon_counts_keeps_positions(self):
        self.assertEqual(parse_balloon_counts("4,,-1, 7"), [4, None, -1, 7])

    def test_balloon_hits_by_ordinal(self):
        notes = []
        for index in range(4):
            notes.append(Note(time=float(index * 2), type=NoteType.BALLOON))
            notes.append(Note(time=float(index * 2 + 1), type=NoteType.ROLL_END))
        course = Course(name="balloons", metadata={"BALLOON": "4,,-1"}, notes=notes)

        self.assertEqual(balloon_hits_for(course, 0), 4)
        self.assertEqual(balloon_hits_for(course, 2), 5)
        self.assertEqual(balloon_hits_for(course, 4), 5)
        self.assertEqual(balloon_hits_for(course, 6), 5)

    def test_missing_metadata_uses_default(self):
        course = Course(name="plain", notes=[Note(time=0.0, type=NoteType.BALLOON)])

        self.assertEqual(balloon_hits_for(course, 0, default=9), 9)


if __name__ == "__main__":
    unittest.main()
