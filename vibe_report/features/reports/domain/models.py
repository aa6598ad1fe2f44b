"""
Domain models for the vibe report feature.

Reports are derived entirely from the model's prose and are never mutated
after parsing, so every shape here is a frozen dataclass.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class AnalysisRequest:
    """A display name and pasted chat transcript submitted for analysis."""

    display_name: str
    chat_transcript: str

    def is_complete(self) -> bool:
        return bool(self.display_name.strip()) and bool(self.chat_transcript.strip())


@dataclass(frozen=True, slots=True)
class PersonReport:
    """One participant card extracted from a report section."""

    name: str
    is_current_user: bool
    vibe_score: float
    vibe_descriptor: str
    energy_score: float
    energy_category: str
    energy_label: str
    presence_score: float
    presence_category: str
    presence_label: str
    narrative: str
    one_liner: str | None = None
    defaulted_fields: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class GroupReport:
    """Group-level score and one-line summary."""

    score: float
    summary: str
    defaulted: bool = False


@dataclass(frozen=True, slots=True)
class ParsedReport:
    people: tuple[PersonReport, ...]
    group: GroupReport

    @property
    def current_user(self) -> PersonReport | None:
        return next((person for person in self.people if person.is_current_user), None)

