from vibe_report.features.reports.domain import GroupReport, ParsedReport
from vibe_report.features.reports.parser import parse_report
from vibe_report.features.reports.service import GENERIC_SHARE_CAPTION, build_share_caption


def test_generic_caption_without_report():
    assert build_share_caption(None) == GENERIC_SHARE_CAPTION


def test_generic_caption_without_people():
    empty = ParsedReport(people=(), group=GroupReport(score=5.5, summary="x"))

    assert build_share_caption(empty) == "Check out my social vibe report! 👇"


def test_caption_uses_current_user_archetype(sample_report):
    caption = build_share_caption(parse_report(sample_report, "Alex"))

    assert caption == (
        "Here's what our group chat says about our vibe 👇\n\n"
        "🧩 Type: Giver  •  💫 Vibe: 6.4/10  •  🤝 Group: 3 people"
    )


def test_caption_falls_back_to_balanced():
    text = "🧩 **Jordan**\n**Reciprocity Style:** 9 / 10\n\n🌐 Group Social Vibe\nScore: 7 / 10 — Fine"

    caption = build_share_caption(parse_report(text, "Alex"))

    assert "🧩 Type: Balanced" in caption
    assert "💫 Vibe: 7.0/10" in caption
    assert "🤝 Group: 1 people" in caption
