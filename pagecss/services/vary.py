"""Cache-variant fingerprints for page requests.

A fingerprint captures everything about the visitor that changes the rendered
page (guest mode, login state, role group, admin bar, plugin-contributed
dimensions). Requests with the same effective state share a fingerprint, and
so share cached CSS. Outside diagnostic mode the rendered dimensions are
replaced by a keyed digest so clients cannot read roles back out of it.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import re
from typing import Any, Callable, Dict, List, Optional, Sequence

from pagecss.core.config import Settings, settings as default_settings
from pagecss.core.logging import get_logger
from pagecss.models.request import RequestContext, SessionIdentity

logger = get_logger(__name__)

NO_VARY = ""

VARY_HEADER = "X-PageCSS-Vary"
VARY_VALUE_HEADER = "X-PageCSS-Vary-Value"
ENV_VARY_COOKIE = "PAGECSS_VARY_COOKIE"
ENV_VARY_VALUE = "PAGECSS_VARY_VALUE"

ACTION_PARAM = "pagecss_ctrl"
GUEST_UPDATE_PARAM = "pagecss_guest"
CRAWLER_USER_AGENT = "pagecss_runner"
COMMENTER_VARY = "commenter"
ADMINISTRATOR_GROUP = 99

ALWAYS_GUEST_AGENTS = re.compile(r"Page Speed|Lighthouse|GTmetrix|Google|Pingdom|bot", re.IGNORECASE)

# Speed-test probes that must always see the shared guest copy.
ALWAYS_GUEST_IPS = frozenset(
    [
        "208.70.247.157",
        *(f"172.255.48.{n}" for n in range(130, 148)),
        "52.229.122.240",
        "104.214.72.101",
        "13.66.7.11",
        "13.85.24.83",
        "13.85.24.90",
        "13.85.82.26",
        "40.74.242.253",
        "40.74.243.13",
        "40.74.243.176",
        "104.214.48.247",
        "157.55.189.189",
        "104.214.110.135",
        "70.37.83.240",
        "65.52.36.250",
        "13.78.216.56",
        "52.162.212.163",
        "23.96.34.105",
        "65.52.113.236",
        *(f"172.255.61.{n}" for n in range(34, 41)),
        "104.41.2.19",
        "191.235.98.164",
        "191.235.99.221",
        "191.232.194.51",
        "52.237.235.185",
        "52.237.250.73",
        "52.237.236.145",
        "104.211.143.8",
        "104.211.165.53",
        "52.172.14.87",
        "40.83.89.214",
        "52.175.57.81",
        "20.188.63.151",
        "20.52.36.49",
        "52.246.165.153",
        "51.144.102.233",
        "13.76.97.224",
        "102.133.169.66",
        "52.231.199.170",
        "13.53.162.7",
        "40.123.218.94",
    ]
)

DimensionProvider = Callable[[RequestContext, Dict[str, Any]], Dict[str, Any]]
CookieProvider = Callable[[RequestContext, List[str]], List[str]]


def fingerprint_digest(secret: str, rendered: str) -> str:
    """Keyed one-way digest that hides the vary dimensions from clients."""

    return hmac.new(secret.encode("utf-8"), rendered.encode("utf-8"), hashlib.sha256).hexdigest()[:32]


class VaryResolver:
    """Derive vary fingerprints and vary cookies for a request."""

    def __init__(
        self,
        config: Settings | None = None,
        dimension_providers: Sequence[DimensionProvider] = (),
        cookie_providers: Sequence[CookieProvider] = (),
    ) -> None:
        self.config = config or default_settings
        self._dimension_providers = list(dimension_providers)
        self._cookie_providers = list(cookie_providers)

    # -- vary cookie -------------------------------------------------------

    def vary_name(self, ctx: RequestContext) -> str:
        """Name of the cookie that carries the default vary for this request."""

        if "vary_name" not in ctx.memo:
            ctx.memo["vary_name"] = self.check_vary_cookie(ctx)
        return ctx.memo["vary_name"]

    def check_vary_cookie(self, ctx: RequestContext) -> str:
        """Validate the configured login cookie against the edge's vary cookies.

        A configured cookie the edge does not vary on means cached pages could
        leak between variants, so the response is made uncacheable.
        """

        configured = self.config.login_vary_cookie
        edge_cookies = ctx.environ.get(ENV_VARY_COOKIE)

        if edge_cookies is None:
            if configured:
                logger.warning("vary_cookie_not_in_edge_rules", cookie=configured)
                ctx.control.set_nocache("vary cookie setting error")
            return self.config.vary_cookie_name

        if not configured:
            return self.config.vary_cookie_name

        if configured in [name.strip() for name in edge_cookies.split(",")]:
            return configured

        logger.warning("vary_cookie_lost", cookie=configured, edge_cookies=edge_cookies)
        ctx.control.set_nocache("vary cookie setting lost error")
        return self.config.vary_cookie_name

    def has_vary(self, ctx: RequestContext) -> Optional[str]:
        return ctx.cookies.get(self.vary_name(ctx)) or None

    # -- guest mode --------------------------------------------------------

    def detect_guest_mode(self, ctx: RequestContext) -> bool:
        """Mark a first-time anonymous visitor as a guest."""

        if not self.config.guest_mode:
            return False
        if ctx.session.logged_in or self.has_vary(ctx):
            return False
        if ctx.query.get(ACTION_PARAM) or ctx.query.get(GUEST_UPDATE_PARAM):
            return False
        if ctx.is_ajax or ctx.is_cron:
            return False

        logger.debug("vary_guest_mode", url=ctx.url)
        ctx.guest = True
        return True

    def always_guest(self, ctx: RequestContext) -> bool:
        """Speed-test tools and crawlers always get the guest copy."""

        if not ctx.user_agent:
            return False
        if ALWAYS_GUEST_AGENTS.search(ctx.user_agent):
            return True
        return ctx.client_ip in ALWAYS_GUEST_IPS

    def update_guest_vary(self, ctx: RequestContext) -> Any:
        """Replace the guest copy with the visitor's real variant.

        Returns ``[]`` when the visitor stays a guest, otherwise sets the vary
        cookie and asks the page to reload.
        """

        if self.always_guest(ctx):
            ctx.guest = True
            logger.debug("vary_always_guest", user_agent=ctx.user_agent, ip=ctx.client_ip)
            return []

        vary = self.resolve(ctx.session, ctx)
        self._set_vary_cookie(ctx, vary)
        logger.debug("vary_guest_updated", vary=vary)
        return {"reload": "yes"}

    # -- fingerprints ------------------------------------------------------

    def role_group(self, role: Optional[str]) -> int:
        if not role:
            return 0
        group = self.config.vary_groups.get(role, 0)
        if not group and role == "administrator":
            group = ADMINISTRATOR_GROUP
        return group

    def resolve(self, session: SessionIdentity, ctx: RequestContext) -> str:
        """Default fingerprint of ``session`` for this request."""

        if ctx.guest:
            return NO_VARY

        memo_key = f"default:{session.user_id}"
        if memo_key in ctx.memo:
            return ctx.memo[memo_key]

        vary: Dict[str, Any] = {}
        if self.config.guest_mode:
            vary["guest_mode"] = 1

        if session.logged_in:
            vary["logged-in"] = 1

            group = self.role_group(session.role)
            if group:
                vary["role"] = group

            if session.show_admin_bar is None or session.show_admin_bar == "true":
                vary["admin_bar"] = 1

        for provider in self._dimension_providers:
            vary = provider(ctx, dict(vary))

        fingerprint = self._render(vary)
        ctx.memo[memo_key] = fingerprint
        return fingerprint

    def _render(self, vary: Dict[str, Any]) -> str:
        if not vary:
            return NO_VARY

        rendered = ";".join(f"{name}:{vary[name]}" for name in sorted(vary))
        if self.config.debug:
            return rendered
        return fingerprint_digest(self.config.hash_secret, rendered)

    def env_vary(self, ctx: RequestContext) -> str:
        return ctx.environ.get(ENV_VARY_VALUE) or ctx.header(VARY_VALUE_HEADER) or ""

    def vary_cookie_names(self, ctx: RequestContext) -> Optional[List[str]]:
        """Extra cookies the current page varies on, sorted.

        Returns ``None`` when the page must not be cached at all.
        """

        names: List[str] = []
        if ctx.password_protected:
            unlock_cookie = self.config.password_cookie_name
            if ctx.cookies.get(unlock_cookie):
                logger.debug("vary_password_protected", url=ctx.url)
                ctx.control.set_nocache("password protected vary")
                return None
            names.append(unlock_cookie)

        for provider in self._cookie_providers:
            names = provider(ctx, list(names))

        return sorted({name for name in names if name})

    def resolve_full(self, ctx: RequestContext) -> str:
        """Everything that decides which generated CSS a request needs."""

        if "full" in ctx.memo:
            return ctx.memo["full"]

        cookie_segment = ""
        names = self.vary_cookie_names(ctx)
        if names:
            # Unset cookies do not split the cache.
            values = [ctx.cookies[name] for name in names if ctx.cookies.get(name)]
            if values:
                cookie_segment = json.dumps(values, separators=(",", ":"))

        full = cookie_segment + self.resolve(ctx.session, ctx) + self.env_vary(ctx)
        ctx.memo["full"] = full
        return full

    # -- response finalization ----------------------------------------------

    def can_change_vary(self, ctx: RequestContext, allow_ajax: bool = False) -> bool:
        if ctx.is_ajax and not allow_ajax:
            logger.debug("vary_change_bypassed", reason="ajax")
            return False
        if ctx.method not in ("GET", "POST"):
            logger.debug("vary_change_bypassed", reason="method", method=ctx.method)
            return False
        if ctx.user_agent.startswith(CRAWLER_USER_AGENT):
            logger.debug("vary_change_bypassed", reason="crawler")
            return False
        return True

    def update_default_vary(self, ctx: RequestContext, allow_ajax: bool = False) -> None:
        """Re-sync the vary cookie when the visitor's fingerprint changed."""

        if ctx.memo.get("vary_synced"):
            return
        ctx.memo["vary_synced"] = "1"

        vary = self.resolve(ctx.session, ctx)
        current = self.has_vary(ctx) or NO_VARY
        if current != vary and current != COMMENTER_VARY and self.can_change_vary(ctx, allow_ajax):
            self._set_vary_cookie(ctx, vary)
            logger.debug("vary_cookie_set", vary=vary)

    def vary_header(self, ctx: RequestContext) -> Optional[str]:
        """Sync the vary cookie and build the edge vary header, if any."""

        self.update_default_vary(ctx)

        names = self.vary_cookie_names(ctx)
        if not names:
            return None
        return f"{VARY_HEADER}: " + ",".join(f"cookie={name}" for name in names)

    def _set_vary_cookie(self, ctx: RequestContext, vary: str) -> None:
        max_age = self.config.vary_cookie_lifetime_seconds if vary else 0
        ctx.control.set_cookie(self.vary_name(ctx), vary, max_age)
