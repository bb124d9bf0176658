"""Template catalog endpoints.

List, get, and upload n8n workflow templates.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, status

from gallery.api.deps import get_template_catalog
from gallery.schemas.template import (
    TemplateDetailResponse,
    TemplateListResponse,
    TemplateUploadResponse,
)
from gallery.services.template_catalog import TemplateCatalog

router = APIRouter()


@router.get("", response_model=TemplateListResponse)
async def list_templates(
    catalog: TemplateCatalog = Depends(get_template_catalog),
):
    """List all templates (metadata; full content when no manifest is used)."""
    return TemplateListResponse(templates=await catalog.list_templates())


@router.get("/{template_id}", response_model=TemplateDetailResponse)
async def get_template_detail(
    template_id: str,
    catalog: TemplateCatalog = Depends(get_template_catalog),
):
    """Get a single template with its nodes and connections."""
    return TemplateDetailResponse(template=await catalog.get_template(template_id))


@router.post(
    "",
    response_model=TemplateUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_template(
    body: dict[str, Any] = Body(...),
    catalog: TemplateCatalog = Depends(get_template_catalog),
):
    """Store a template. Accepts ``{"template": {...}}`` or a bare template."""
    payload = body.get("template") if isinstance(body.get("template"), dict) else body
    template, key = await catalog.upload_template(payload)
    return TemplateUploadResponse(template=template, key=key)
