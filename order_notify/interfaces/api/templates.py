"""Message template API routes."""

from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from order_notify.application.services.template_renderer import TemplateRenderer
from order_notify.domain.schemas.template import (
    MessageTemplate,
    TemplateCreate,
    TemplateUpdate,
    TemplateValidation,
)
from order_notify.interfaces.deps import get_template_renderer

router = APIRouter(prefix="/api/templates", tags=["Templates"])


class TemplateValidationRequest(BaseModel):
    content: str
    required_variables: Optional[list[str]] = None


@router.get("", response_model=list[MessageTemplate])
async def list_templates(renderer: TemplateRenderer = Depends(get_template_renderer)):
    return await renderer.get_all_templates()


@router.post("", response_model=MessageTemplate, status_code=status.HTTP_201_CREATED)
async def create_template(body: TemplateCreate, renderer: TemplateRenderer = Depends(get_template_renderer)):
    return await renderer.create_template(body)


@router.patch("/{template_id}", response_model=MessageTemplate)
async def update_template(
    template_id: str,
    body: TemplateUpdate,
    renderer: TemplateRenderer = Depends(get_template_renderer),
):
    return await renderer.update_template(template_id, body)


@router.post("/validate", response_model=TemplateValidation)
def validate_template(body: TemplateValidationRequest):
    return TemplateRenderer.validate_template(body.content, body.required_variables)


@router.post("/cache/clear")
def clear_template_cache(renderer: TemplateRenderer = Depends(get_template_renderer)):
    renderer.clear_cache()
    return {"cleared": True}
