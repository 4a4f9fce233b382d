"""Shared API dependencies."""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from pagecss.core.config import settings
from pagecss.models.critical_css import PageViewRequest
from pagecss.models.request import RequestContext, SessionIdentity
from pagecss.services.registry import Services, get_services

api_token_header = APIKeyHeader(name=settings.auth_token_header, auto_error=False)


def verify_api_key(token: str | None = Security(api_token_header)) -> str:
    """Validate static API token if configured."""

    expected = settings.auth_token
    if not expected:
        return ""

    if token in {expected, f"Bearer {expected}"}:
        return token or ""

    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API token")


def get_auth_dependency(token: str = Depends(verify_api_key)) -> str:
    """Expose dependency alias for routers."""

    return token


def get_services_dependency() -> Services:
    """Service graph with the summary re-read from disk for this request."""

    services = get_services()
    services.summary.reload()
    return services


def context_from_page_view(payload: PageViewRequest) -> RequestContext:
    """Translate a host-reported page view into a request context."""

    return RequestContext(
        url=payload.url,
        page_type=payload.page_type,
        is_404=payload.is_404,
        user_agent=payload.user_agent,
        client_ip=payload.client_ip,
        cookies=dict(payload.cookies),
        query=dict(payload.query),
        environ=dict(payload.environ),
        is_ajax=payload.is_ajax,
        is_mobile=payload.is_mobile,
        password_protected=payload.password_protected,
        session=SessionIdentity(
            user_id=payload.user_id,
            role=payload.role,
            show_admin_bar=payload.show_admin_bar,
        ),
    )


def context_from_request(request: Request) -> RequestContext:
    """Context for a visitor calling the service directly."""

    return RequestContext(
        url=str(request.url),
        method=request.method,
        user_agent=request.headers.get("user-agent", ""),
        client_ip=request.client.host if request.client else "",
        cookies=dict(request.cookies),
        query=dict(request.query_params),
        headers=dict(request.headers),
        is_ajax=request.headers.get("x-requested-with", "").lower() == "xmlhttprequest",
    )
