"""Per-request state consumed by the vary resolver and the page-view path."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass
class SessionIdentity:
    """What the host's auth layer knows about the visitor."""

    user_id: int = 0
    role: Optional[str] = None
    # Raw admin-bar preference; None means the user never set it.
    show_admin_bar: Optional[str] = None

    @property
    def logged_in(self) -> bool:
        return self.user_id > 0 and bool(self.role)


@dataclass
class ResponseControl:
    """Cache directives, cookies and tags collected while serving a response."""

    nocache_reasons: List[str] = field(default_factory=list)
    cookies: List[Tuple[str, str, int]] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)

    @property
    def cacheable(self) -> bool:
        return not self.nocache_reasons

    def set_nocache(self, reason: str) -> None:
        if reason not in self.nocache_reasons:
            self.nocache_reasons.append(reason)

    def set_cookie(self, name: str, value: str, max_age: int) -> None:
        self.cookies.append((name, value, max_age))

    def add_tag(self, tag: str) -> None:
        if tag not in self.tags:
            self.tags.append(tag)


@dataclass
class RequestContext:
    """A single page request as seen by the CSS optimizer."""

    url: str
    page_type: str = ""
    is_404: bool = False
    method: str = "GET"
    user_agent: str = ""
    client_ip: str = ""
    cookies: Dict[str, str] = field(default_factory=dict)
    query: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    # Server variables set by the edge layer (vary cookie list, vary value).
    environ: Dict[str, str] = field(default_factory=dict)
    is_ajax: bool = False
    is_cron: bool = False
    is_mobile: bool = False
    password_protected: bool = False
    session: SessionIdentity = field(default_factory=SessionIdentity)
    control: ResponseControl = field(default_factory=ResponseControl)
    guest: bool = False
    memo: Dict[str, str] = field(default_factory=dict, repr=False)

    def header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None
