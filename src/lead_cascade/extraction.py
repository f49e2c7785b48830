"""Pure extraction helpers for e-mails, social profiles and contact links."""

from __future__ import annotations

import re
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

CONTACT_HINTS = [
    "/contact",
    "/contact-us",
    "/about",
    "/team",
    "/booking",
    "/submit",
    "/submissions",
    "/get-in-touch",
]
EMAIL_REGEX = re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}", re.IGNORECASE)
IGNORED_EMAIL_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg")

PLATFORM_DOMAINS = {
    "instagram.com": "instagram",
    "tiktok.com": "tiktok",
    "twitter.com": "twitter",
    "x.com": "twitter",
    "linkedin.com": "linkedin",
}
NON_PROFILE_SEGMENTS = {"p", "reel", "reels", "explore", "share", "intent", "hashtag", "search", "status"}


def canonicalize_url(href: str, base: str) -> str:
    """Resolve relative URLs and strip hash fragments."""
    return urljoin(base, href).split("#", maxsplit=1)[0]


def domain_from_url(url: str) -> str:
    """Extract lowercase hostname from URL, without ``www.``."""
    domain = urlparse(url).netloc.lower()
    return domain[4:] if domain.startswith("www.") else domain


def platform_for_url(url: str) -> str:
    """Name the social platform a URL belongs to, or ``""``."""
    domain = domain_from_url(url)
    for suffix, platform in PLATFORM_DOMAINS.items():
        if domain == suffix or domain.endswith(f".{suffix}"):
            return platform
    return ""


def is_profile_url(url: str) -> bool:
    """True for profile pages, False for posts, searches and share links."""
    segments = [segment for segment in urlparse(url).path.split("/") if segment]
    if not segments:
        return False
    return segments[0].lower() not in NON_PROFILE_SEGMENTS


def extract_emails(text: str) -> set[str]:
    """Return normalized emails discovered in plain text."""
    return {
        match.group(0).lower()
        for match in EMAIL_REGEX.finditer(text or "")
        if not match.group(0).lower().endswith(IGNORED_EMAIL_SUFFIXES)
    }


def dedupe_preserve_order(items: list[str]) -> list[str]:
    """Dedupe values while preserving first-seen order."""
    output: list[str] = []
    seen: set[str] = set()
    for item in items:
        normalized = item.split("#", maxsplit=1)[0]
        if normalized in seen:
            continue
        seen.add(normalized)
        output.append(item)
    return output


def find_contact_links(html: str, base_url: str) -> list[str]:
    """Find contact and about links plus mailto addresses from a page."""
    links: list[str] = []
    soup = BeautifulSoup(html or "", "html.parser")
    for anchor in soup.find_all("a", href=True):
        href = str(anchor["href"]).strip()
        if href.lower().startswith("mailto:"):
            address = href.split(":", maxsplit=1)[1].split("?", maxsplit=1)[0].strip()
            if address:
                links.append(f"mailto:{address}")
            continue
        lower_href = href.lower()
        if any(hint in lower_href for hint in CONTACT_HINTS):
            links.append(canonicalize_url(href, base_url))
    return dedupe_preserve_order(links)


def extract_social_links(html: str, base_url: str) -> dict[str, str]:
    """Map each social platform to the first profile link found on a page."""
    socials: dict[str, str] = {}
    soup = BeautifulSoup(html or "", "html.parser")
    for anchor in soup.find_all("a", href=True):
        url = canonicalize_url(str(anchor["href"]).strip(), base_url)
        platform = platform_for_url(url)
        if platform and platform not in socials and is_profile_url(url):
            socials[platform] = url
    return socials
