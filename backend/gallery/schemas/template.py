"""Pydantic schemas for template and import endpoints.

Templates stay plain dicts: stored JSON carries UI fields (preview,
diagramImage, ...) this service passes through without modelling.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TemplateListResponse(BaseModel):
    templates: list[dict[str, Any]]


class TemplateDetailResponse(BaseModel):
    template: dict[str, Any]


class TemplateUploadResponse(BaseModel):
    template: dict[str, Any]
    key: str


class ImportWorkflowRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    template_id: str | None = Field(default=None, alias="templateId")
    workflow: dict[str, Any] | None = None
    name: str | None = None
    api_key: str | None = Field(default=None, alias="apiKey")
    api_base: str | None = Field(default=None, alias="apiBase")


class ImportWorkflowResponse(BaseModel):
    id: Any = None
    raw: Any = None
    endpoint: str


class ErrorResponse(BaseModel):
    message: str
    error: str | None = None
