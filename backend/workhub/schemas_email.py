from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    SENDING = "sending"
    SENT = "sent"


def _check_email(v: str) -> str:
    v = v.strip()
    if "@" not in v:
        raise ValueError("invalid email address")
    return v


class Recipient(BaseModel):
    email: str = Field(..., min_length=3)
    name: Optional[str] = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _check_email(v)


class RecipientList(BaseModel):
    id: str
    company_id: Optional[str] = None
    name: str
    description: str = ""
    recipients: list[Recipient] = Field(default_factory=list)
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Campaign(BaseModel):
    id: str
    company_id: Optional[str] = None
    name: str
    subject: str
    preheader: str = ""
    sender_name: Optional[str] = None
    sender_email: Optional[str] = None
    html_content: str = ""
    recipient_list_ids: list[str] = Field(default_factory=list)
    status: CampaignStatus = CampaignStatus.DRAFT
    scheduled_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    last_sent_at: Optional[datetime] = None
    recipient_count: int = 0
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TrackingEvent(BaseModel):
    tracking_id: str
    timestamp: datetime
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    url: Optional[str] = None


class CampaignAnalytics(BaseModel):
    total_sent: int = 0
    delivered: int = 0
    failed: int = 0
    opened: int = 0
    clicked: int = 0
    opens: list[TrackingEvent] = Field(default_factory=list)
    clicks: list[TrackingEvent] = Field(default_factory=list)


class CampaignCreateIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    subject: str = Field(..., min_length=1, max_length=300)
    preheader: str = ""
    sender_name: Optional[str] = None
    sender_email: Optional[str] = None
    html_content: str = ""
    recipient_list_ids: list[str] = Field(default_factory=list)
    scheduled_at: Optional[datetime] = None
    company_id: Optional[str] = None


class CampaignUpdateIn(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    subject: Optional[str] = Field(None, min_length=1, max_length=300)
    preheader: Optional[str] = None
    sender_name: Optional[str] = None
    sender_email: Optional[str] = None
    html_content: Optional[str] = None
    recipient_list_ids: Optional[list[str]] = None
    scheduled_at: Optional[datetime] = None
    status: Optional[CampaignStatus] = None


class RecipientListIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    recipients: list[Recipient] = Field(default_factory=list)
    company_id: Optional[str] = None


class RecipientListUpdateIn(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    recipients: Optional[list[Recipient]] = None


class MarketingCustomer(BaseModel):
    id: str
    company_id: Optional[str] = None
    email: str
    name: str = ""
    tags: list[str] = Field(default_factory=list)
    status: str = "active"
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class MarketingCustomerIn(BaseModel):
    email: str = Field(..., min_length=3)
    name: str = ""
    tags: list[str] = Field(default_factory=list)
    company_id: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _check_email(v)


class MarketingCustomerUpdateIn(BaseModel):
    email: Optional[str] = Field(None, min_length=3)
    name: Optional[str] = None
    tags: Optional[list[str]] = None
    status: Optional[str] = Field(None, min_length=1)

    @field_validator("email")
    @classmethod
    def _email(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _check_email(v)


class SystemUser(BaseModel):
    """A platform user offered as a recipient import source."""

    id: str
    email: str
    name: str = ""
    role: str
    tags: list[str] = Field(default_factory=list)


class CampaignSendIn(BaseModel):
    list_ids: Optional[list[str]] = None
    audience_id: Optional[str] = None


class CampaignTestIn(BaseModel):
    test_email: Optional[str] = None


class CampaignSendOut(BaseModel):
    message: str
    recipient_count: int
    delivered: int
    failed: int
