"""Visitor-facing vary routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response

from pagecss.api.dependencies import context_from_request, get_services_dependency
from pagecss.services.registry import Services

router = APIRouter(prefix="/vary", tags=["vary"])


@router.post("/guest", summary="Swap the guest copy for the visitor's own variant")
def update_guest_vary(
    request: Request,
    response: Response,
    services: Services = Depends(get_services_dependency),
):
    ctx = context_from_request(request)
    result = services.resolver.update_guest_vary(ctx)

    for name, value, max_age in ctx.control.cookies:
        if max_age:
            response.set_cookie(name, value, max_age=max_age, httponly=True, secure=request.url.scheme == "https")
        else:
            response.delete_cookie(name)
    return result
