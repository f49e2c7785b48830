"""Identity keys, additive merging, and follower-count normalization."""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlparse

from .models import SOCIAL_PLATFORMS, Contact, RawContact

FOLLOWER_TOKEN = re.compile(r"(\d+(?:\.\d+)?)\s*([KMB])?", re.IGNORECASE)
THOUSANDS_SEPARATOR = re.compile(r"(?<=\d),(?=\d{3}(?!\d))")
SUFFIX_MULTIPLIERS = {"": 1, "K": 1_000, "M": 1_000_000, "B": 1_000_000_000}
EMPTY_FOLLOWER_MARKERS = {"", "—", "-"}

TEXT_FIELDS = ("name", "title", "company", "email", "phone", "country", "category", "url", "bio")


def normalize_followers(value: object) -> int:
    """Parse counts like ``"622K"``, ``"1.2M"`` or ``"253K IG / 487K X"``.

    Composite strings yield the largest count. Anything unparseable is 0.
    """
    if not isinstance(value, str):
        return 0
    text = value.strip()
    if text in EMPTY_FOLLOWER_MARKERS:
        return 0
    text = THOUSANDS_SEPARATOR.sub("", text)
    counts = [
        round(float(number) * SUFFIX_MULTIPLIERS[(suffix or "").upper()])
        for number, suffix in FOLLOWER_TOKEN.findall(text)
    ]
    return max(counts, default=0)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _collapse(value: str) -> str:
    return " ".join(value.lower().split())


def normalize_handle(platform: str, value: str) -> str:
    """Reduce a handle or profile URL to a bare lower-case handle."""
    text = value.strip()
    if not text:
        return ""
    looks_like_url = "://" in text or text.lower().startswith("www.") or (
        "/" in text and "." in text.split("/", maxsplit=1)[0]
    )
    if not looks_like_url:
        return text.lstrip("@").strip().lower()

    parsed = urlparse(text if "://" in text else f"https://{text}")
    if platform == "website":
        domain = parsed.netloc.lower()
        return domain[4:] if domain.startswith("www.") else domain
    segments = [segment for segment in parsed.path.split("/") if segment]
    if not segments:
        return ""
    if platform == "linkedin" and len(segments) > 1:
        return segments[1].lower()
    if segments[0] == "@" and len(segments) > 1:
        return segments[1].lower()
    return segments[0].lstrip("@").lower()


def _social_keys(socials: dict[str, str]) -> list[str]:
    keys: list[str] = []
    for platform in SOCIAL_PLATFORMS:
        handle = normalize_handle(platform, socials.get(platform, "") or "")
        if handle:
            keys.append(f"{platform}:{handle}")
    return keys


def _name_company_key(name: str, company: str) -> str:
    name_part = _collapse(name)
    if not name_part:
        return ""
    return f"name:{name_part}|{_collapse(company)}"


def identity_keys(
    *, email: str, socials: dict[str, str], name: str, company: str
) -> list[str]:
    """All identity keys for a record, highest priority first.

    The first entry is the identity key. The rest are aliases that let a
    later record carrying a different strongest key still find its match.
    Website keys only count when they are the strongest key available.
    """
    keys: list[str] = []
    if normalize_email(email):
        keys.append(f"email:{normalize_email(email)}")
    social = _social_keys(socials)
    for key in social:
        if key.startswith("website:") and (keys or len(social) > 1):
            continue
        keys.append(key)
    pair = _name_company_key(name, company)
    if pair:
        keys.append(pair)
    return keys


def identity_key(raw: RawContact) -> str:
    """Derive the identity key of a raw contact, or ``""`` when it has none."""
    keys = identity_keys(email=raw.email, socials=raw.socials, name=raw.name, company=raw.company)
    return keys[0] if keys else ""


def merge_into(contact: Contact, raw: RawContact) -> list[str]:
    """Fill empty fields of ``contact`` from ``raw``; return the fields filled.

    Non-empty fields are never overwritten. Follower counts adopt the larger
    normalized value.
    """
    filled: list[str] = []
    for name in TEXT_FIELDS:
        incoming = (getattr(raw, name) or "").strip()
        if incoming and not getattr(contact, name):
            setattr(contact, name, incoming)
            filled.append(name)

    for platform, value in raw.socials.items():
        if platform not in SOCIAL_PLATFORMS or not value or not value.strip():
            continue
        if not contact.socials.get(platform):
            contact.socials[platform] = value.strip()
            filled.append(platform)

    incoming_followers = normalize_followers(raw.followers)
    if incoming_followers > contact.followers_normalized:
        contact.followers_raw = raw.followers.strip()
        contact.followers_normalized = incoming_followers
        filled.append("followers")

    if raw.source:
        contact.source = raw.source
        if raw.source not in contact.provenance:
            contact.provenance.append(raw.source)
    return filled


@dataclass
class MergeStats:
    added: int = 0
    updated: int = 0
    unchanged: int = 0
    skipped: int = 0


class Deduplicator:
    """Accumulates raw contacts into a canonical, deduplicated set.

    Owned by one run. Insertion order is discovery order.
    """

    def __init__(self) -> None:
        self._contacts: list[Contact] = []
        self._index: dict[str, Contact] = {}

    def _keys_of(self, contact: Contact) -> list[str]:
        return identity_keys(
            email=contact.email, socials=contact.socials, name=contact.name, company=contact.company
        )

    @staticmethod
    def _conflicts(contact: Contact, raw: RawContact) -> bool:
        """True when both records carry a different value for a stronger key."""
        incoming_email = normalize_email(raw.email)
        if incoming_email and contact.email and normalize_email(contact.email) != incoming_email:
            return True
        for platform in SOCIAL_PLATFORMS:
            if platform == "website":
                continue
            ours = normalize_handle(platform, contact.socials.get(platform, "") or "")
            theirs = normalize_handle(platform, raw.socials.get(platform, "") or "")
            if ours and theirs and ours != theirs:
                return True
        return False

    def _find(self, raw: RawContact, keys: list[str]) -> Contact | None:
        for key in keys:
            candidate = self._index.get(key)
            if candidate is not None and not self._conflicts(candidate, raw):
                return candidate
        return None

    def merge(self, raw: RawContact) -> tuple[Contact | None, bool, list[str]]:
        """Merge one raw contact.

        Returns the canonical contact (``None`` when the raw contact has no
        identity), whether it was created, and the fields that were filled.
        """
        keys = identity_keys(email=raw.email, socials=raw.socials, name=raw.name, company=raw.company)
        if not keys:
            return None, False, []

        existing = self._find(raw, keys)
        created = existing is None
        if existing is None:
            existing = Contact(identity_key=keys[0], discovered_at=len(self._contacts))
            self._contacts.append(existing)
        filled = merge_into(existing, raw)

        if created or filled:
            current_keys = self._keys_of(existing)
            existing.identity_key = current_keys[0]
            for key in current_keys:
                self._index.setdefault(key, existing)
        return existing, created, filled

    def merge_all(self, raws: list[RawContact]) -> MergeStats:
        stats = MergeStats()
        for raw in raws:
            contact, created, filled = self.merge(raw)
            if contact is None:
                stats.skipped += 1
            elif created:
                stats.added += 1
            elif filled:
                stats.updated += 1
            else:
                stats.unchanged += 1
        return stats

    @property
    def contacts(self) -> list[Contact]:
        return list(self._contacts)

    def snapshot(self) -> tuple[RawContact, ...]:
        """Frozen copies of every canonical contact, for adapters that refine them."""
        return tuple(contact.to_raw() for contact in self._contacts)

    def __len__(self) -> int:
        return len(self._contacts)
