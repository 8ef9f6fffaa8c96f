from fastapi import APIRouter, Depends, Request

from app.api.dependencies import get_visitor_service
from app.core.rate_limit import UNKNOWN_CLIENT, enforce_rate_limit, resolve_client_identity
from app.schemas.visitors import VisitorLogRequest, VisitorLogResponse
from app.services.visitor_service import VisitorService, build_visitor_data

router = APIRouter(prefix="/api", tags=["Visitors"])


@router.post(
    "/visitors",
    response_model=VisitorLogResponse,
    response_model_by_alias=True,
    dependencies=[Depends(enforce_rate_limit("visitors"))],
)
async def log_visitor(
    request: Request,
    body: VisitorLogRequest,
    service: VisitorService = Depends(get_visitor_service),
) -> VisitorLogResponse:
    """Record a visit for a browser fingerprint.

    Device, browser and OS are derived from the User-Agent; country and city
    from edge proxy headers when present.
    """
    client_ip = resolve_client_identity(request)
    visit = build_visitor_data(
        body.fingerprint,
        ip=None if client_ip == UNKNOWN_CLIENT else client_ip,
        headers=request.headers,
    )
    visit_count = await service.log_visit(visit)
    return VisitorLogResponse(fingerprint=body.fingerprint, visit_count=visit_count)
