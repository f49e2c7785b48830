"""Match-quality scoring of canonical contacts against a brief."""

from __future__ import annotations

import re

from .models import Contact, SearchBrief
from .validation import normalize_market

WEIGHT_CONTACT_TYPE = 0.35
WEIGHT_MARKET = 0.25
WEIGHT_GENRE = 0.15
WEIGHT_EMAIL = 0.12
WEIGHT_SOCIAL = 0.05
WEIGHT_IDENTITY_FIELDS = 0.08

IDENTITY_FIELDS = ("name", "title", "company", "phone")
TOKEN_SPLIT = re.compile(r"[^a-z0-9&]+")


def _tokens(text: str) -> set[str]:
    return {token for token in TOKEN_SPLIT.split(text.lower()) if len(token) > 1}


def _compact(text: str) -> str:
    return re.sub(r"[^a-z0-9&]", "", text.lower())


def _text_fields(contact: Contact) -> list[str]:
    return [
        value for value in (contact.category, contact.title, contact.bio, contact.company, contact.name) if value
    ]


def _compact_hit(needle: str, fields: list[str]) -> bool:
    """Compact substring match inside one field, never across two."""
    return bool(needle) and any(needle in _compact(value) for value in fields)


def _token_present(token: str, words: set[str]) -> bool:
    return token in words or f"{token}s" in words or (token.endswith("s") and token[:-1] in words)


def contact_type_match(contact: Contact, contact_types: tuple[str, ...]) -> float:
    """1.0 for a full match on any requested type, 0.5 for a partial one."""
    fields = _text_fields(contact)
    if not fields:
        return 0.0
    words = _tokens(" ".join(fields))
    best = 0.0
    for contact_type in contact_types:
        type_tokens = _tokens(contact_type.replace("_", " "))
        if not type_tokens:
            continue
        if _compact_hit(_compact(contact_type), fields):
            return 1.0
        hits = sum(1 for token in type_tokens if _token_present(token, words))
        if hits == len(type_tokens):
            return 1.0
        if hits:
            best = max(best, 0.5)
    return best


def market_match(contact: Contact, markets: tuple[str, ...]) -> float:
    if not contact.country:
        return 0.0
    wanted = {normalize_market(market) for market in markets}
    return 1.0 if normalize_market(contact.country) in wanted else 0.0


def genre_overlap(contact: Contact, genre: str) -> float:
    """Share of genre keywords found in the contact's free text."""
    genre_tokens = _tokens(genre)
    if not genre_tokens:
        return 1.0
    fields = _text_fields(contact)
    words = _tokens(" ".join(fields))
    if _compact_hit(_compact(genre), fields):
        return 1.0
    return sum(1 for token in genre_tokens if _token_present(token, words)) / len(genre_tokens)


def completeness(contact: Contact) -> float:
    score = 0.0
    if contact.email:
        score += WEIGHT_EMAIL
    if any(value for value in contact.socials.values()):
        score += WEIGHT_SOCIAL
    filled = sum(1 for name in IDENTITY_FIELDS if getattr(contact, name))
    score += WEIGHT_IDENTITY_FIELDS * filled / len(IDENTITY_FIELDS)
    return score


def score_contact(contact: Contact, brief: SearchBrief) -> float:
    """Weighted match score in ``[0, 1]``.

    Every component only grows as the merger fills more fields, so the score
    never drops when a contact gains data.
    """
    score = (
        WEIGHT_CONTACT_TYPE * contact_type_match(contact, brief.contact_types)
        + WEIGHT_MARKET * market_match(contact, brief.markets)
        + WEIGHT_GENRE * genre_overlap(contact, brief.genre)
        + completeness(contact)
    )
    return max(0.0, min(1.0, score))


def score_contacts(contacts: list[Contact], brief: SearchBrief) -> None:
    """Set ``match_score`` on every contact in place."""
    for contact in contacts:
        contact.match_score = score_contact(contact, brief)
