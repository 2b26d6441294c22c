"""Tenant, channel and agent models for multi-tenancy support."""

from datetime import datetime, time

from pydantic import BaseModel, Field, field_validator

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


class BusinessProfile(BaseModel):
    """Tenant-wide business settings used by the pipeline."""

    # Opening hours (None on either side means always open)
    business_hours_start: time | None = None
    business_hours_end: time | None = None
    working_days: set[int] = Field(default_factory=lambda: {0, 1, 2, 3, 4})  # 0 = Monday
    timezone: str = "America/Sao_Paulo"

    # Canned replies
    offline_message: str = ""
    fallback_message: str = ""

    # Facts shared with the agent
    address: str = ""
    website: str = ""
    instagram: str = ""

    @field_validator("working_days")
    @classmethod
    def _check_weekdays(cls, value: set[int]) -> set[int]:
        invalid = [day for day in value if day < 0 or day > 6]
        if invalid:
            raise ValueError(f"working_days must be between 0 (Monday) and 6 (Sunday), got {invalid}")
        return value

    def to_prompt_context(self) -> str:
        """Format the business facts as plain text for the system prompt."""
        parts = []

        if self.business_hours_start and self.business_hours_end:
            parts.append(
                f"Business hours: {self.business_hours_start:%H:%M} to {self.business_hours_end:%H:%M}"
            )
        if self.working_days:
            days = ", ".join(WEEKDAY_NAMES[day] for day in sorted(self.working_days))
            parts.append(f"Working days: {days}")
        if self.address:
            parts.append(f"Address: {self.address}")
        if self.website:
            parts.append(f"Website: {self.website}")
        if self.instagram:
            parts.append(f"Instagram: {self.instagram}")

        if not parts:
            return ""
        return "## Business Information:\n" + "\n".join(parts)


class Tenant(BaseModel):
    """Tenant (customer company) model."""

    id: str = Field(..., description="Unique tenant identifier")
    name: str = Field(..., description="Tenant display name")
    profile: BusinessProfile = Field(default_factory=BusinessProfile)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class AgentPrompt(BaseModel):
    """Structured agent instructions, serialized once into a system prompt."""

    role: str = ""
    context: str = ""
    action: str = ""
    intent: str = ""
    format: str = ""

    def to_prompt(self) -> str:
        """Render the non-empty sections as a markdown-headed prompt."""
        sections = [
            ("ROLE", self.role),
            ("CONTEXT", self.context),
            ("ACTION", self.action),
            ("INTENT", self.intent),
            ("FORMAT", self.format),
        ]
        return "\n\n".join(
            f"# {title}\n{body.strip()}" for title, body in sections if body.strip()
        )


class Agent(BaseModel):
    """AI persona attached to a channel. Read-only for the pipeline."""

    id: str
    tenant_id: str
    name: str
    prompt: AgentPrompt = Field(default_factory=AgentPrompt)

    # Capability flags
    enable_audio: bool = False
    enable_image: bool = False

    # Multi-agent routing
    parent_agent_id: str | None = None


class Channel(BaseModel):
    """A connected gateway instance. Read-only for the pipeline."""

    id: str
    name: str = Field(..., description="Gateway instance name, unique across tenants")
    token: str = Field(..., description="Per-instance gateway API key")
    tenant_id: str
    agent_id: str | None = None
