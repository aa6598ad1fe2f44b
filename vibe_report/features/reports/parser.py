"""
Report parser: turns the model's prose into PersonReport / GroupReport cards.

Each participant section starts at a marker emoji (🧩 or 🍀, optionally
behind a markdown heading) and is read with an ordered list of extraction
rules. A rule either matches and yields a value, or falls back to its
default; the names of defaulted fields are kept on the result so format
drift in the model output is visible in logs and tests.

Two report shapes are understood:

    🧩 **Alex**
    🪶 Social Vibe: 8.3 / 10 — [Warm connector]
    **Your Reciprocity Style:** 7.5 / 10
    **Your Social Presence:** 9.0 / 10
    **Your Communication Pattern:** ...

and the older one:

    ### 🧩 You (Alex)
    **Social Vibe: 8 / 10** — Warm connector
    Your Energy: 7 / 10 (Giver)
    Your Presence: 9 / 10 (Always there)
    Your Balance: ...
    Your Vibe: "..."

parse_report is a pure function of its input and never raises.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass

from vibe_report.features.reports.domain import GroupReport, ParsedReport, PersonReport
from vibe_report.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Defaults used when a rule does not match
DEFAULT_SCORE = 5.0
DEFAULT_VIBE_DESCRIPTOR = "Unique communicator"
DEFAULT_ENERGY_LABEL = "Balanced"
DEFAULT_PRESENCE_LABEL = "Consistent"
DEFAULT_NARRATIVE = "Shows balanced engagement patterns."
DEFAULT_ONE_LINER = "Engaged participant"
DEFAULT_GROUP_SCORE = 5.5
DEFAULT_GROUP_SUMMARY = "A mix of energies and dynamics"

MAX_NAME_LENGTH = 50
MAX_DESCRIPTOR_LENGTH = 120
MAX_NARRATIVE_LENGTH = 500
MAX_ONE_LINER_LENGTH = 150

MIN_SCORE = 1.0
MAX_SCORE = 10.0

# (upper bound, category); first bucket whose bound admits the score wins
PRESENCE_BUCKETS = (
    (2.0, "Never Around"),
    (5.0, "Sometimes Around"),
    (8.0, "Mostly Present"),
)
PRESENCE_TOP = "Always Present"

# 2.5 opens the "Taker" bucket; everything else is an inclusive upper bound
EXTREME_TAKER_BELOW = 2.5
RECIPROCITY_BUCKETS = (
    (5.0, "Taker"),
    (7.5, "Giver"),
)
RECIPROCITY_TOP = "Extreme Giver"

_NUMBER = r"([0-9]+(?:\.[0-9]+)?)"
_OUT_OF_TEN = _NUMBER + r"[ \t]*/[ \t]*10"
_LABEL_GAP = r"[ \t]*:?[ \t]*\**[ \t]*"
_MARKER = "[\U0001f9e9\U0001f340]\ufe0f?"  # 🧩 🍀, optional emoji presentation selector

SECTION_START_RE = re.compile(r"(?:#{1,6}[ \t]*)?" + _MARKER + r"[ \t]+")
SECTION_END_RE = re.compile(r"\U0001f310|\n[ \t]*#{1,6}[ \t]")  # 🌐 or a heading line

BOLD_NAME_RE = re.compile(_MARKER + r"[ \t]+\*\*([^*\n]+)\*\*")
YOU_NAME_RE = re.compile(_MARKER + r"[ \t]+You[ \t]*\(([^)\n]+)\)")
PLAIN_NAME_RE = re.compile(_MARKER + r"[ \t]+([^\W\d_][\w \t'.-]*?)[ \t]*(?::|\n|$)")

CURRENT_USER_MARKER = "Your Reciprocity Style"

VIBE_RE = re.compile(
    r"Social Vibe" + _LABEL_GAP + _OUT_OF_TEN + r"[ \t]*\**[ \t]*(?:[—–-][ \t]*([^\n]*))?",
    re.IGNORECASE,
)
ENERGY_RE = re.compile(
    r"(?:Reciprocity Style|Energy)"
    + _LABEL_GAP
    + _OUT_OF_TEN
    + r"(?:[ \t]*\**[ \t]*\(([^)\n]+)\))?",
    re.IGNORECASE,
)
PRESENCE_RE = re.compile(
    r"(?:Social[ \t]+)?Presence" + _LABEL_GAP + _OUT_OF_TEN + r"(?:[ \t]*\**[ \t]*\(([^)\n]+)\))?",
    re.IGNORECASE,
)
NARRATIVE_LABEL_RE = re.compile(
    r"(?:Your[ \t]+)?(?:Balance|Communication Pattern)[ \t]*\**[ \t]*:[ \t]*\**[ \t]*",
    re.IGNORECASE,
)
NEXT_LABEL_RE = re.compile(
    r"^[ \t]*(?:-{3,}|\**[ \t]*(?:Your[ \t]+)?"
    r"(?:Social Vibe|Vibe|Reciprocity Style|Social Presence|Presence|Energy|Balance|Communication Pattern)"
    r"[ \t]*\**[ \t]*:)",
    re.IGNORECASE | re.MULTILINE,
)
LEAD_IN_RE = re.compile(r"^\*\*[^*]*\*\*\s*[-:]?\s*")
PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t]*\n")
ONE_LINER_SECTION_RE = re.compile(r"Your[ \t]+Vibe[ \t]*\**[ \t]*:[ \t]*\**", re.IGNORECASE)
QUOTED_RE = re.compile(r"[\"“”]([^\"“”\n]*)[\"“”]")
SENTENCE_RE = re.compile(r"[^.!?]+[.!?]")

GROUP_RE = re.compile(
    r"\U0001f310[ \t]*Group Social Vibe[^\n]*\n\s*\**Score"
    + _LABEL_GAP
    + _OUT_OF_TEN
    + r"[ \t]*\**[ \t]*[—–-][ \t]*([^\n]+)",
    re.IGNORECASE,
)
LEGACY_GROUP_RE = re.compile(
    r"Group Score"
    + _LABEL_GAP
    + _OUT_OF_TEN
    + r"[ \t]*\**[ \t]*(?:[—–-][ \t]*([^\n]+)|\n+[ \t]*([^\n]+(?:\n[^\n]+)?))?",
    re.IGNORECASE,
)


def clamp_score(value: float) -> float:
    return min(MAX_SCORE, max(MIN_SCORE, value))


def reciprocity_category(score: float) -> str:
    if score < EXTREME_TAKER_BELOW:
        return "Extreme Taker"
    for upper, category in RECIPROCITY_BUCKETS:
        if score <= upper:
            return category
    return RECIPROCITY_TOP


def presence_category(score: float) -> str:
    for upper, category in PRESENCE_BUCKETS:
        if score <= upper:
            return category
    return PRESENCE_TOP


@dataclass(frozen=True, slots=True)
class ExtractionRule:
    """
    One field extraction: search `pattern`, run `postprocess` on the match.

    A missing match, or a postprocess result of None, yields `default`.
    """

    field: str
    pattern: re.Pattern
    default: object
    postprocess: Callable[[re.Match], object | None]

    def apply(self, text: str) -> tuple[object, bool]:
        match = self.pattern.search(text)
        if match:
            value = self.postprocess(match)
            if value is not None:
                return value, True
        return self.default, False


def _score_from(match: re.Match) -> float:
    return clamp_score(float(match.group(1)))


def _label_from(match: re.Match) -> str | None:
    label = (match.group(2) or "").strip()
    return label or None


def _descriptor_from(match: re.Match) -> str | None:
    descriptor = (match.group(2) or "").strip()
    if descriptor.startswith("[") and "]" in descriptor:
        descriptor = descriptor[1 : descriptor.index("]")]
    descriptor = re.sub(r"[*_]", "", descriptor).strip()
    return descriptor[:MAX_DESCRIPTOR_LENGTH] or None


def _narrative_from(match: re.Match) -> str | None:
    rest = match.string[match.end() :]
    stop = NEXT_LABEL_RE.search(rest, 1)
    if stop:
        rest = rest[: stop.start()]

    narrative = LEAD_IN_RE.sub("", rest.strip()).strip()
    first_paragraph = PARAGRAPH_BREAK_RE.split(narrative)[0].strip()
    if not first_paragraph:
        first_paragraph = narrative.split("\n")[0].strip()

    return first_paragraph[:MAX_NARRATIVE_LENGTH].strip() or None


def _one_liner_from(match: re.Match) -> str:
    section = match.string[match.end() :]

    quoted = QUOTED_RE.search(section)
    if quoted and quoted.group(1).strip():
        return quoted.group(1).strip()[:MAX_ONE_LINER_LENGTH]

    sentence = SENTENCE_RE.search(section)
    if sentence and sentence.group(0).strip():
        return sentence.group(0).strip()[:MAX_ONE_LINER_LENGTH]

    return DEFAULT_ONE_LINER


PERSON_RULES: tuple[ExtractionRule, ...] = (
    ExtractionRule("vibe_score", VIBE_RE, DEFAULT_SCORE, _score_from),
    ExtractionRule("vibe_descriptor", VIBE_RE, DEFAULT_VIBE_DESCRIPTOR, _descriptor_from),
    ExtractionRule("energy_score", ENERGY_RE, DEFAULT_SCORE, _score_from),
    ExtractionRule("energy_label", ENERGY_RE, DEFAULT_ENERGY_LABEL, _label_from),
    ExtractionRule("presence_score", PRESENCE_RE, DEFAULT_SCORE, _score_from),
    ExtractionRule("presence_label", PRESENCE_RE, DEFAULT_PRESENCE_LABEL, _label_from),
    ExtractionRule("narrative", NARRATIVE_LABEL_RE, DEFAULT_NARRATIVE, _narrative_from),
    # Older reports only; absent section means no one-liner at all
    ExtractionRule("one_liner", ONE_LINER_SECTION_RE, None, _one_liner_from),
)


def split_sections(text: str) -> list[str]:
    """Cut the report into participant fragments, one per section marker."""
    starts = [match.start() for match in SECTION_START_RE.finditer(text)]
    fragments = []

    for index, start in enumerate(starts):
        end = starts[index + 1] if index + 1 < len(starts) else len(text)
        fragment = text[start:end]

        marker = SECTION_START_RE.match(fragment)
        stop = SECTION_END_RE.search(fragment, marker.end()) if marker else None
        if stop:
            fragment = fragment[: stop.start()]

        fragments.append(fragment)

    return fragments


def extract_name(fragment: str) -> tuple[str | None, bool]:
    """
    Return (name, written_as_you) for a fragment.

    written_as_you is True for the older `You (Name)` header form.
    """
    bold = BOLD_NAME_RE.search(fragment)
    if bold:
        return bold.group(1).strip(), False

    you = YOU_NAME_RE.search(fragment)
    if you:
        return you.group(1).strip(), True

    plain = PLAIN_NAME_RE.search(fragment)
    if plain:
        name = plain.group(1).strip()
        if "group" in name.lower():
            return None, False
        return name, False

    return None, False


def parse_person_section(fragment: str, display_name: str = "") -> PersonReport | None:
    """Parse one participant fragment; None when no usable name is found."""
    name, written_as_you = extract_name(fragment)
    if not name or len(name) > MAX_NAME_LENGTH:
        return None

    display_name = (display_name or "").strip()
    is_current_user = (
        written_as_you
        or CURRENT_USER_MARKER.lower() in fragment.lower()
        or (bool(display_name) and f"({display_name})" in fragment)
    )

    values: dict[str, object] = {}
    defaulted: list[str] = []
    for rule in PERSON_RULES:
        value, matched = rule.apply(fragment)
        values[rule.field] = value
        if not matched and rule.default is not None:
            defaulted.append(rule.field)

    energy_score = values["energy_score"]
    presence_score = values["presence_score"]

    return PersonReport(
        name=name,
        is_current_user=is_current_user,
        vibe_score=values["vibe_score"],
        vibe_descriptor=values["vibe_descriptor"],
        energy_score=energy_score,
        energy_category=reciprocity_category(energy_score),
        energy_label=values["energy_label"],
        presence_score=presence_score,
        presence_category=presence_category(presence_score),
        presence_label=values["presence_label"],
        narrative=values["narrative"],
        one_liner=values["one_liner"],
        defaulted_fields=tuple(defaulted),
    )


def parse_group(text: str) -> GroupReport:
    match = GROUP_RE.search(text)
    if match:
        return GroupReport(score=clamp_score(float(match.group(1))), summary=match.group(2).strip())

    legacy = LEGACY_GROUP_RE.search(text)
    if legacy:
        summary = (legacy.group(2) or legacy.group(3) or "").strip()
        summary = " ".join(line.strip() for line in summary.splitlines() if line.strip())
        return GroupReport(
            score=clamp_score(float(legacy.group(1))),
            summary=summary or DEFAULT_GROUP_SUMMARY,
        )

    return GroupReport(score=DEFAULT_GROUP_SCORE, summary=DEFAULT_GROUP_SUMMARY, defaulted=True)


def parse_report(final_text: str, display_name: str = "") -> ParsedReport:
    """
    Extract the group report and every participant card from report text.

    Works on partial buffers too; missing pieces fall back to defaults.
    """
    text = final_text or ""

    people = []
    for fragment in split_sections(text):
        person = parse_person_section(fragment, display_name)
        if person is not None:
            people.append(person)

    group = parse_group(text)

    drifted = [person.name for person in people if person.defaulted_fields]
    if drifted or group.defaulted:
        logger.debug(
            "Report parsed with defaulted fields",
            people_with_defaults=drifted,
            group_defaulted=group.defaulted,
        )

    return ParsedReport(people=tuple(people), group=group)
