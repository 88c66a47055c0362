from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Union


@dataclass
class UploadFile:
    name: str
    content: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: Path) -> "UploadFile":
        content_type, _ = mimetypes.guess_type(path.name)
        return cls(
            name=path.name,
            content=path.read_bytes(),
            content_type=content_type or "application/octet-stream",
        )


@dataclass
class Download:
    content: bytes
    filename: str
    content_type: str


@dataclass
class FacetEntry:
    value: str
    label: str
    count: float | None = None


@dataclass
class Pagination:
    page: float
    per_page: float
    total_items: float
    total_pages: float


# Suggestions


@dataclass
class Suggestion:
    id: str
    company: str
    activity: str
    distance: float | None
    compatibility: int
    status: str
    reasons: list[str] = field(default_factory=list)
    description: str = ""
    tags: list[str] = field(default_factory=list)
    what_they_offer: str | None = None
    what_they_want: str | None = None
    created_at: datetime | None = None


@dataclass
class SuggestionList:
    suggestions: list[Suggestion]
    total: int


@dataclass
class SuggestionStats:
    active: int
    new_this_week: int
    pending: int


# Assistant message segments


@dataclass
class TextSegment:
    text: str
    type: str = "text"


@dataclass
class LinkSegment:
    text: str
    href: str
    type: str = "link"


@dataclass
class ButtonSegment:
    text: str
    payload: Any = None
    type: str = "button"


@dataclass
class ActionSegment:
    text: str
    action: str
    payload: Any = None
    type: str = "action"


Segment = Union[TextSegment, LinkSegment, ButtonSegment, ActionSegment]


@dataclass
class AssistantMessage:
    id: str
    role: str
    created_at: datetime | None
    status: str
    content: list[Segment]
    tokens_in: float | None = None
    tokens_out: float | None = None
    usage: Any = None
    retry_after: Any = None
    metadata: dict[str, Any] | None = None

    @property
    def text(self) -> str:
        return " ".join(segment.text for segment in self.content if segment.text)


@dataclass
class AssistantConversation:
    id: str
    title: str
    status: str
    last_message_at: datetime | None


@dataclass
class AssistantTemplate:
    id: str
    label: str
    prompt: str


@dataclass
class AssistantUpdates:
    messages: list[AssistantMessage]
    status: str | None
    status_normalized: str | None
    retry_after: Any
    tokens: Any = None
    tokens_in: float | None = None
    tokens_out: float | None = None
    updated_at: datetime | None = None


# Company messaging


@dataclass
class Participant:
    id: str | None
    name: str
    role: str | None


@dataclass
class Attachment:
    id: str | None
    name: str
    url: str | None
    size: float | None


@dataclass
class CompanyConversation:
    id: str | None
    company_id: str | None
    company_name: str
    company_sector: str | None = None
    unread_count: int = 0
    message_count: int | None = None
    last_message_preview: str = ""
    last_message_at: datetime | None = None
    last_sender: str | None = None
    participants: list[Participant] = field(default_factory=list)


@dataclass
class CompanyMessage:
    id: str
    conversation_id: str | None
    author_id: str | None
    author_name: str
    author_role: str | None
    content: str
    created_at: datetime | None
    attachments: list[Attachment] = field(default_factory=list)
    is_own: bool = False


@dataclass
class ContactResult:
    conversation: CompanyConversation | None
    conversation_id: str | None
    already_exists: bool = False


# Admin dashboard


@dataclass
class StatusInfo:
    label: str
    tone: str
    value: Any


@dataclass
class AdminCompanyRow:
    id: str | None
    name: str
    email: str | None
    sector: str | None
    status: str
    status_tone: str
    raw_status: Any
    created_at: datetime | None
    last_activity_at: datetime | None
    created_at_label: str | None = None
    last_activity_label: str | None = None
    phone: str | None = None


@dataclass
class AdminCompaniesPage:
    items: list[AdminCompanyRow]
    pagination: Pagination
    statuses: list[FacetEntry]
    sectors: list[FacetEntry]


@dataclass
class MetricBlock:
    value: float | None
    subtitle: str | None
    period: str | None
    change_label: str
    change_numeric: float | None
    change_percent: float | None
    change_type: str


@dataclass
class AdminMetrics:
    companies: MetricBlock
    connections: MetricBlock
    activity: MetricBlock
    moderation: MetricBlock


@dataclass
class DistributionEntry:
    label: str | None
    percent: float | None
    value: float | None


@dataclass
class StatsCard:
    key: str
    title: str
    value: float | None
    change_label: str
    change_type: str
    value_label: str | None = None


@dataclass
class SystemStats:
    cards: list[StatsCard]
    sector_distribution: list[DistributionEntry]


# Import


@dataclass
class FinancialImpact:
    min_revenue: float
    max_revenue: float
    breakdown: Any = None


@dataclass
class ProfileSummary:
    productions: float
    wastes: float
    needs: float
    analyses: float


@dataclass
class SyncResult:
    productions: float
    wastes: float
    needs: float

    @property
    def total(self) -> float:
        return self.productions + self.wastes + self.needs


@dataclass
class MappingResult:
    column_count: int
    preview_rows: list[Any]
    mapping: dict[str, Any]


# Billing


@dataclass
class BillingPlan:
    id: str
    name: str
    price: float | None
    currency: str
    interval: str
    features: list[str] = field(default_factory=list)
    excluded_features: list[str] = field(default_factory=list)
    highlight: bool = False
    prevent_selection: bool = False


# Directory


@dataclass
class DirectoryCompany:
    id: str | None
    name: str
    description: str
    sector: str | None
    distance: float | None
    tags: list[str] = field(default_factory=list)
    offer: str | None = None
    demand: str | None = None
    coordinates: tuple[float, float] | None = None


@dataclass
class DirectoryPage:
    companies: list[DirectoryCompany]
    total: float
    pagination: Pagination
    sectors: list[FacetEntry]
    waste_types: list[FacetEntry]


@dataclass
class PublicResource:
    id: Any
    title: str
    details: str | None = None
    category: str | None = None
    quantity: str | None = None
    status: str | None = None


@dataclass
class PublicCompanyStats:
    synergies: float
    completed: float
    employees: float | None = None


@dataclass
class PublicCompany:
    id: str | None
    name: str
    description: str
    sector: str
    address: str | None
    postal_code: str | None
    city: str | None
    phone: str | None
    email: str | None
    website: str | None
    tags: list[str]
    coordinates: tuple[float, float] | None
    productions: list[PublicResource]
    needs: list[PublicResource]
    wastes: list[PublicResource]
    stats: PublicCompanyStats
