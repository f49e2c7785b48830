"""Apollo people-match client used by the enrichment tier."""

from __future__ import annotations

import logging
from typing import Any

from requests import Session
from requests.exceptions import RequestException

APOLLO_MATCH_URL = "https://api.apollo.io/v1/people/match"


def split_name(name: str) -> tuple[str, str]:
    parts = name.split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


class ApolloClient:
    """Lightweight wrapper around Apollo's person match endpoint."""

    def __init__(
        self, *, session: Session, api_key: str, timeout: float, logger: logging.Logger
    ) -> None:
        self._session = session
        self._api_key = api_key
        self._timeout = timeout
        self._logger = logger

    def match_person(self, *, name: str, email: str, company: str) -> dict[str, Any]:
        if not (email or company):
            return {}
        first_name, last_name = split_name(name)
        body = {
            "email": email or None,
            "organization_name": company or None,
            "first_name": first_name or None,
            "last_name": last_name or None,
        }
        try:
            response = self._session.post(
                APOLLO_MATCH_URL,
                json={key: value for key, value in body.items() if value},
                headers={
                    "Content-Type": "application/json",
                    "Cache-Control": "no-cache",
                    "X-Api-Key": self._api_key,
                },
                timeout=self._timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (RequestException, ValueError) as exc:
            self._logger.debug("Apollo match failed for %s: %s", email or company, exc)
            return {}
        person = payload.get("person") if isinstance(payload, dict) else None
        return person if isinstance(person, dict) else {}
