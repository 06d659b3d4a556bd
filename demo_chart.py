# demo_chart.py
from __future__ import annotations

from typing import List


def build_demo_chart_text(*, difficulty: str = "oni") -> str:
    """Deterministic sample chart covering tempo, signature, scroll, gogo, rolls, balloons and branches."""
    normalized_difficulty = (difficulty or "oni").strip().lower() or "oni"

    if normalized_difficulty == "easy":
        course_name = "Easy"
        body_rows = [
            "1000100010001000,",
            "2000200020002000,",
            "1010202010102020,",
        ]
        balloon_counts = "3"
    else:
        normalized_difficulty = "oni"
        course_name = "Oni"
        body_rows = [
            "1122112211221122,",
            "3030404010201020,",
            "1120112011201120,",
        ]
        balloon_counts = "4,6"

    lines: List[str] = [
        "TITLE:Demo Song",
        "SUBTITLE:--tjaplay",
        "BPM:120",
        "OFFSET:-0.5",
        "WAVE:demo.ogg",
        "",
        f"COURSE:{course_name}",
        "LEVEL:5",
        f"BALLOON:{balloon_counts}",
        "",
        "#START",
        "// lead-in",
        ",",
    ]
    lines.extend(body_rows)
    lines.extend(
        [
            "#GOGOSTART",
            "5000000000000008,",
            "#GOGOEND",
            "#BPMCHANGE 150",
            "#SCROLL 1.5",
            "7000000000000008,",
            "#MEASURE 3/4",
            "112,",
            "#MEASURE 4/4",
            "#SCROLL 1.0",
            "#BRANCHSTART p,40,80",
            "#N",
            "1010101010101010,",
            "#E",
            "1000100010001000,",
            "#M",
            "1111222211112222,",
            "3000400030004000,",
            "#BRANCHEND",
        ]
    )
    if normalized_difficulty == "oni":
        lines.extend(
            [
                "7000000000000000,",
                "0000000000000008,",
            ]
        )
    lines.extend(
        [
            "3000000000000000,",
            ",",
            "#END",
        ]
    )
    return "\n".join(lines) + "\n"
