"""Routes for critical and unused CSS."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import RedirectResponse

from pagecss.api.dependencies import context_from_page_view, get_auth_dependency, get_services_dependency
from pagecss.core.config import settings
from pagecss.core.errors import PageCSSError
from pagecss.models.critical_css import (
    CombinedCSSRequest,
    CookieDirective,
    PageViewRequest,
    PageViewResponse,
    ProbeRequest,
)
from pagecss.models.job import ArtifactType
from pagecss.models.summary import Notice, RequestState
from pagecss.services.critical_css import CSSAction
from pagecss.services.registry import Services

router = APIRouter(prefix="/css", tags=["css"], dependencies=[Depends(get_auth_dependency)])


@router.post("/page-view", response_model=PageViewResponse, summary="Look up or queue CSS for a page view")
def page_view(payload: PageViewRequest, services: Services = Depends(get_services_dependency)) -> PageViewResponse:
    """Return cached critical/unused CSS for the view, queueing whatever is missing."""

    ctx = context_from_page_view(payload)
    resolver = services.resolver
    resolver.detect_guest_mode(ctx)

    ccss = services.page_css.prepare_ccss(ctx)
    if payload.combined_css:
        services.page_css.store_combined(ctx, payload.combined_css)
    ucss_path = services.page_css.load_ucss(ctx)
    vary_header = resolver.vary_header(ctx)

    return PageViewResponse(
        ccss=ccss,
        ucss_path=ucss_path,
        html_lazy=services.page_css.prepare_html_lazy(),
        vary=resolver.resolve_full(ctx),
        vary_header=vary_header,
        tags=list(ctx.control.tags),
        cookies=[CookieDirective(name=name, value=value, max_age=max_age) for name, value, max_age in ctx.control.cookies],
        cacheable=ctx.control.cacheable,
        nocache_reasons=list(ctx.control.nocache_reasons),
    )


@router.get("/summary", response_model=RequestState, summary="Queues, history and timings")
def get_summary(services: Services = Depends(get_services_dependency)) -> RequestState:
    return services.summary.state


@router.get("/notices", response_model=List[Notice], summary="Drain operator notices")
def get_notices(services: Services = Depends(get_services_dependency)) -> List[Notice]:
    return services.notices.drain()


@router.get("/actions/{action}", summary="Run an operator queue action")
def run_action(action: CSSAction, services: Services = Depends(get_services_dependency)) -> RedirectResponse:
    """Generate or clear a queue, then return to the admin page."""

    services.page_css.handle_action(action, services.worker)
    return RedirectResponse(settings.admin_redirect_url, status_code=status.HTTP_303_SEE_OTHER)


@router.post("/cache/clear", summary="Remove all generated CSS")
def clear_cache(services: Services = Depends(get_services_dependency)) -> dict:
    services.page_css.remove_cache_folder()
    return {"status": "cleared"}


@router.post("/probe", summary="Generate critical CSS for a URL without caching it")
def probe(payload: ProbeRequest, services: Services = Depends(get_services_dependency)) -> dict:
    try:
        return services.worker.probe(payload.url, payload.user_agent)
    except PageCSSError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc


@router.put("/combined", summary="Store the host's combined stylesheet for a page")
def put_combined(payload: CombinedCSSRequest, services: Services = Depends(get_services_dependency)) -> dict:
    """Unused CSS jobs for ``page_key`` and ``vary`` trim this stylesheet."""

    if not payload.css.strip():
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="css is empty")
    digest = services.store.put(ArtifactType.combined, payload.page_key, payload.vary, payload.css)
    return {"digest": digest}
