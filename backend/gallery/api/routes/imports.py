"""One-click import of a template into an n8n instance."""

from fastapi import APIRouter, Depends, Header, status

from gallery.api.deps import get_import_forwarder
from gallery.schemas.template import ImportWorkflowRequest, ImportWorkflowResponse
from gallery.services.import_forwarder import API_KEY_HEADER, ImportForwarder

router = APIRouter()


@router.post(
    "",
    response_model=ImportWorkflowResponse,
    status_code=status.HTTP_201_CREATED,
)
async def import_workflow(
    body: ImportWorkflowRequest,
    x_n8n_api_key: str | None = Header(default=None, alias=API_KEY_HEADER),
    forwarder: ImportForwarder = Depends(get_import_forwarder),
):
    """Create a workflow in n8n from a stored template or an inline workflow.

    Upstream rejections come back with n8n's own status code and body.
    """
    result = await forwarder.import_workflow(
        template_id=body.template_id,
        workflow=body.workflow,
        name=body.name,
        api_key_header=x_n8n_api_key,
        api_key_body=body.api_key,
        api_base=body.api_base,
    )
    return ImportWorkflowResponse(id=result.id, raw=result.raw, endpoint=result.endpoint)
