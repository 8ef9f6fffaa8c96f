"""Visitor logging: derive device and location hints, then upsert by fingerprint."""

from __future__ import annotations

import logging
import re
from typing import Mapping

from app.core.logging import hash_identifier
from app.repositories.visitors_repository import VisitorData, VisitorRepository
from app.utils.blocking import run_blocking

logger = logging.getLogger(__name__)

_BOT = re.compile(r"bot|crawler|spider|crawling|slurp|headless", re.IGNORECASE)
_TABLET = re.compile(r"ipad|tablet|kindle|silk|playbook|(android(?!.*mobile))", re.IGNORECASE)
_MOBILE = re.compile(r"mobi|iphone|ipod|android.*mobile|windows phone|blackberry", re.IGNORECASE)

# First match wins; Chromium derivatives carry "Chrome" too, so they go first
_BROWSERS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("Edge", re.compile(r"edg(e|a|ios)?/", re.IGNORECASE)),
    ("Opera", re.compile(r"opr/|opera", re.IGNORECASE)),
    ("Samsung Internet", re.compile(r"samsungbrowser/", re.IGNORECASE)),
    ("Firefox", re.compile(r"firefox/|fxios/", re.IGNORECASE)),
    ("Chrome", re.compile(r"chrome/|crios/|chromium/", re.IGNORECASE)),
    ("Safari", re.compile(r"version/[\d.]+.*safari/", re.IGNORECASE)),
)

_OPERATING_SYSTEMS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("iOS", re.compile(r"iphone|ipad|ipod", re.IGNORECASE)),
    ("Android", re.compile(r"android", re.IGNORECASE)),
    ("Windows", re.compile(r"windows", re.IGNORECASE)),
    ("ChromeOS", re.compile(r"cros", re.IGNORECASE)),
    ("macOS", re.compile(r"mac os x|macintosh", re.IGNORECASE)),
    ("Linux", re.compile(r"linux", re.IGNORECASE)),
)

COUNTRY_HEADERS = ("cf-ipcountry", "x-vercel-ip-country")
CITY_HEADERS = ("cf-ipcity", "x-vercel-ip-city")


def detect_device(user_agent: str | None) -> str | None:
    if not user_agent:
        return None
    if _BOT.search(user_agent):
        return "bot"
    if _TABLET.search(user_agent):
        return "tablet"
    if _MOBILE.search(user_agent):
        return "mobile"
    return "desktop"


def _first_family(user_agent: str | None, families: tuple[tuple[str, re.Pattern[str]], ...]) -> str | None:
    if not user_agent:
        return None
    for name, pattern in families:
        if pattern.search(user_agent):
            return name
    return "Other"


def detect_browser(user_agent: str | None) -> str | None:
    return _first_family(user_agent, _BROWSERS)


def detect_os(user_agent: str | None) -> str | None:
    return _first_family(user_agent, _OPERATING_SYSTEMS)


def _first_header(headers: Mapping[str, str], names: tuple[str, ...]) -> str | None:
    for name in names:
        value = (headers.get(name) or "").strip()
        # Cloudflare reports unknown locations as "XX"
        if value and value.upper() != "XX":
            return value
    return None


def build_visitor_data(
    fingerprint: str,
    *,
    ip: str | None,
    headers: Mapping[str, str],
) -> VisitorData:
    """Assemble a visit from the request's fingerprint, IP and headers."""
    user_agent = headers.get("user-agent") or None
    return VisitorData(
        fingerprint=fingerprint,
        ip=ip,
        user_agent=user_agent,
        device=detect_device(user_agent),
        browser=detect_browser(user_agent),
        os=detect_os(user_agent),
        country=_first_header(headers, COUNTRY_HEADERS),
        city=_first_header(headers, CITY_HEADERS),
    )


class VisitorService:
    def __init__(self, repository: VisitorRepository) -> None:
        self.repository = repository

    async def log_visit(self, visit: VisitorData) -> int:
        """Record the visit and return the visitor's total visit count.

        Raises:
            PersistenceAppError: If the upsert fails.
        """
        visit_count = await run_blocking(self.repository.record_visit, visit)
        logger.info(
            "visitor.logged",
            extra={
                "fingerprint_hash": hash_identifier(visit.fingerprint),
                "device": visit.device,
                "country": visit.country,
                "visit_count": visit_count,
            },
        )
        return visit_count
