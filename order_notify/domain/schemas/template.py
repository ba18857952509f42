"""Pydantic schemas for message templates and compliance results."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from order_notify.domain.enums import NotificationType


class MessageTemplate(BaseModel):
    id: str
    template_type: NotificationType
    content: str
    variables: list[str] = Field(default_factory=list)
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class TemplateCreate(BaseModel):
    template_type: NotificationType
    content: str
    variables: Optional[list[str]] = None
    is_active: bool = True


class TemplateUpdate(BaseModel):
    content: Optional[str] = None
    variables: Optional[list[str]] = None
    is_active: Optional[bool] = None


class TemplateValidation(BaseModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)


class ComplianceResult(BaseModel):
    is_compliant: bool = True
    violations: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
