"""
Request and response models for the reports API.
"""

from pydantic import BaseModel, Field

from vibe_report.features.reports.domain import GroupReport, ParsedReport, PersonReport


class AnalysisRequestBody(BaseModel):
    display_name: str = Field(..., max_length=100)
    chat_transcript: str = Field(..., max_length=100_000)


class PersonReportResponse(BaseModel):
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
    defaulted_fields: list[str] = Field(default_factory=list)

    @classmethod
    def from_domain(cls, person: PersonReport) -> "PersonReportResponse":
        return cls(
            name=person.name,
            is_current_user=person.is_current_user,
            vibe_score=person.vibe_score,
            vibe_descriptor=person.vibe_descriptor,
            energy_score=person.energy_score,
            energy_category=person.energy_category,
            energy_label=person.energy_label,
            presence_score=person.presence_score,
            presence_category=person.presence_category,
            presence_label=person.presence_label,
            narrative=person.narrative,
            one_liner=person.one_liner,
            defaulted_fields=list(person.defaulted_fields),
        )


class GroupReportResponse(BaseModel):
    score: float
    summary: str
    defaulted: bool = False

    @classmethod
    def from_domain(cls, group: GroupReport) -> "GroupReportResponse":
        return cls(score=group.score, summary=group.summary, defaulted=group.defaulted)


class ReportResponse(BaseModel):
    people: list[PersonReportResponse]
    group: GroupReportResponse
    balance: int
    share_caption: str
    raw_report: str

    @classmethod
    def from_domain(
        cls, report: ParsedReport, *, balance: int, share_caption: str, raw_report: str
    ) -> "ReportResponse":
        return cls(
            people=[PersonReportResponse.from_domain(person) for person in report.people],
            group=GroupReportResponse.from_domain(report.group),
            balance=balance,
            share_caption=share_caption,
            raw_report=raw_report,
        )


class SyntheticChatResponse(BaseModel):
    display_name: str
    chat_transcript: str
