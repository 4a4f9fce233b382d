"""Models for CSS generation requests and the page-view API."""

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class GenerationRequest(BaseModel):
    """Payload posted to the external generation service."""

    type: str = Field(..., description="CCSS or UCSS.")
    url: str
    correlation_id: str = Field(..., description="Queue key of the job being generated.")
    client_identity: str = ""
    is_mobile: int = 0
    markup: str
    css: str
    whitelist: Optional[List[str]] = None


class PageViewRequest(BaseModel):
    """A page view reported by the host, used to look up or queue CSS."""

    url: str
    page_type: str = ""
    is_404: bool = False
    user_agent: str = ""
    client_ip: str = ""
    is_mobile: bool = False
    is_ajax: bool = False
    password_protected: bool = False
    user_id: int = 0
    role: Optional[str] = None
    show_admin_bar: Optional[str] = None
    cookies: Dict[str, str] = Field(default_factory=dict)
    query: Dict[str, str] = Field(default_factory=dict)
    environ: Dict[str, str] = Field(default_factory=dict)
    combined_css: Optional[str] = Field(
        default=None,
        description="The host's combined stylesheet for this view; unused CSS is trimmed from it.",
    )


class CombinedCSSRequest(BaseModel):
    """Combined stylesheet pushed by the host for a page and vary."""

    page_key: str
    vary: str = ""
    css: str


class CookieDirective(BaseModel):
    """A cookie the host should set on its response. ``max_age`` 0 deletes it."""

    name: str
    value: str
    max_age: int


class PageViewResponse(BaseModel):
    """CSS to inline or link for a page view, plus cache directives."""

    ccss: Optional[str] = Field(default=None, description="<style> block with critical CSS.")
    ucss_path: Optional[str] = Field(default=None, description="Path of the trimmed stylesheet.")
    html_lazy: Optional[str] = None
    vary: str = ""
    vary_header: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    cookies: List[CookieDirective] = Field(default_factory=list)
    cacheable: bool = True
    nocache_reasons: List[str] = Field(default_factory=list)


class ProbeRequest(BaseModel):
    """Diagnostic one-off generation for a URL."""

    url: str
    user_agent: str = "Mozilla/5.0 (compatible; PageCSS probe)"
