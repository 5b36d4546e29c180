"""Create demo stories and saved progress for development/testing."""

import shutil

from backend import storage

DEMO_STORIES = [
    {
        "title": "The Crossing",
        "description": "A level crossing, a missing girl and a witness who sees things.",
        "start": "crossing",
        "variables": {"trust": 0},
        "global_tags": ["title:The Crossing"],
        "knots": {
            "crossing": {
                "paragraphs": [
                    {"text": "═══ PART ONE ═══", "tags": ["type:header", "chapter:1"]},
                    {"text": "Fog hangs over the level crossing. The barrier is still down.",
                     "tags": ["mood:mystery", "image:crossing.jpg"]},
                    {"text": "She was standing right there. Then the train came.",
                     "tags": ["speaker:witness"]},
                    {"text": "For a moment you see it too: a red scarf caught on the rail.",
                     "tags": ["type:vision", "haptic:insight"]},
                ],
                "choices": [
                    {"text": "Believe the witness", "goto": "believe", "set": {"trust": 1}},
                    {"text": "Check the timetable", "goto": "timetable"},
                ],
            },
            "believe": {
                "paragraphs": [
                    {"text": "The witness nods slowly and points down the line.",
                     "tags": ["mood:hope", "suspect_revealed"]},
                ],
                "choices": [{"text": "Follow the line", "goto": "end"}],
            },
            "timetable": {
                "paragraphs": [
                    {"text": "Trains through the crossing that night:\n1. 22:10 freight\n2. 23:40 passenger",
                     "tags": ["type:document", "clue"]},
                ],
                "choices": [{"text": "Follow the line", "goto": "end"}],
            },
            "end": {
                "paragraphs": [
                    {"text": "...", "tags": []},
                    {"text": "The scarf is gone. The case is not.", "tags": ["ending", "mood:dark"]},
                ],
            },
        },
    },
]


def create_demo_data() -> None:
    """Wipe uploaded stories and snapshots and create fresh demo stories."""
    for directory in (storage.stories_dir(), storage.snapshots_dir()):
        if directory.exists():
            shutil.rmtree(directory)
        directory.mkdir(parents=True, exist_ok=True)

    for story in DEMO_STORIES:
        storage.create_story(story)

    print(f"Created {len(DEMO_STORIES)} demo stories.")
