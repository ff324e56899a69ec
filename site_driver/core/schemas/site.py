"""Site request and response schemas."""
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class SiteStatus(str, Enum):
    """Lifecycle status derived from the stack's current operation"""

    IDLE = "IDLE"
    UPDATING = "UPDATING"
    DELETING = "DELETING"


class SiteContentBase(BaseModel):
    """Base schema for requests carrying site content"""

    content: str = Field("", description="Site content passed to the deployment program")

    @field_validator("content", mode="before")
    @classmethod
    def null_content_is_empty(cls, v: Any) -> Any:
        """Treat an explicit null as empty content"""
        return "" if v is None else v


class SiteCreate(SiteContentBase):
    """Schema for creating a Site"""

    id: str = Field(..., min_length=1, description="Site ID, reused as the stack name")


class SiteUpdate(SiteContentBase):
    """Schema for updating a Site"""


class SiteCreated(BaseModel):
    """Schema for the create response"""

    id: str


class Site(BaseModel):
    """Schema for Site response"""

    id: str
    url: Optional[str] = Field(None, description="Website URL once provisioned")
    status: SiteStatus
