from vibe_report.features.reports.prompts import (
    SYNTHETIC_CHAT,
    SYNTHETIC_DISPLAY_NAME,
    build_report_prompt,
)


def test_prompt_interpolates_name_and_transcript():
    prompt = build_report_prompt("Alex", "Alex: hi\nJordan: hey")

    assert "Generate a detailed Vibe Report for Alex" in prompt
    assert "🧩 **Alex**" in prompt
    assert prompt.endswith("Alex: hi\nJordan: hey")


def test_prompt_carries_format_markers():
    prompt = build_report_prompt("Alex", "chat")

    for marker in (
        "🪶 Social Vibe: X.X / 10",
        "**Your Reciprocity Style:** X.X / 10",
        "**Social Presence:** X.X / 10",
        "## 🌐 Group Social Vibe",
        "AT LEAST 4 points difference",
    ):
        assert marker in prompt


def test_transcript_braces_are_left_alone():
    transcript = "Sam: {not a placeholder} {0}"

    assert build_report_prompt("Sam", transcript).endswith(transcript)


def test_synthetic_chat_shape():
    lines = SYNTHETIC_CHAT.splitlines()

    assert SYNTHETIC_DISPLAY_NAME == "Alex"
    assert {line.split(":", 1)[0] for line in lines} == {"Alex", "Jordan", "Casey"}
    assert lines[-1] == "Casey: ok cool"
