"""Quote drafting through Google's Gemini ``generateContent`` REST endpoint."""
from __future__ import annotations

import json
import logging
import random
import time
from typing import Any, Dict, List, Mapping

import requests

from chiffrage.errors import SuggestionError
from chiffrage.quotes.document import new_item, new_section
from chiffrage.sanitize import TITLE_MAX, sanitize_text

logger = logging.getLogger(__name__)

MAX_TRIES = 3

PROMPT = """
Based on the following project description, create a structured quote.

Here are the available Roles and their Daily Rates (TJM):
{rates}

Project Description: "{description}"

Instructions:
1. Organize the work into logical Sections (e.g., "1. Conception", "2. Development", "3. Deployment").
2. For each Section, list specific Line Items (features or tasks).
3. For each Line Item, estimate the time (in days) required for EACH appropriate role,
   using only the role names listed above.

Keep descriptions professional and concise (in French).
"""

RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "sections": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "title": {"type": "STRING"},
                    "items": {
                        "type": "ARRAY",
                        "items": {
                            "type": "OBJECT",
                            "properties": {
                                "description": {"type": "STRING"},
                                "details": {
                                    "type": "ARRAY",
                                    "items": {
                                        "type": "OBJECT",
                                        "properties": {
                                            "role": {"type": "STRING"},
                                            "days": {"type": "NUMBER"},
                                        },
                                        "required": ["role", "days"],
                                    },
                                },
                            },
                            "required": ["description", "details"],
                        },
                    },
                },
                "required": ["title", "items"],
            },
        },
    },
}


class GeminiClient:
    def __init__(self, api_key: str, model: str = "gemini-2.5-flash",
                 base_url: str = "https://generativelanguage.googleapis.com/v1beta",
                 timeout: int = 60) -> None:
        if not api_key:
            raise SuggestionError("GEMINI_API_KEY is not configured")
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update(
            {"x-goog-api-key": api_key, "Content-Type": "application/json"}
        )

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "GeminiClient":
        return cls(
            api_key=config.get("GEMINI_API_KEY", ""),
            model=config.get("GEMINI_MODEL", "gemini-2.5-flash"),
            base_url=config.get("GEMINI_API_URL", "https://generativelanguage.googleapis.com/v1beta"),
        )

    def post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """POST with exponential backoff on 429/5xx and network errors."""
        url = f"{self.base_url}{path}"
        tries = 0
        while True:
            try:
                r = self.session.post(url, json=payload, timeout=self.timeout)
            except requests.RequestException as e:
                tries += 1
                if tries >= MAX_TRIES:
                    raise SuggestionError(f"Suggestion service unreachable: {e}") from e
                time.sleep(min(2 ** tries, 30) + random.random())
                continue
            if r.status_code == 429 or r.status_code >= 500:
                tries += 1
                if tries >= MAX_TRIES:
                    raise SuggestionError(f"Suggestion service answered {r.status_code}")
                delay = min(2 ** tries, 30) + random.random()
                logger.warning("gemini %s, retrying in %.1fs", r.status_code, delay)
                time.sleep(delay)
                continue
            if r.status_code >= 400:
                raise SuggestionError(f"Suggestion service rejected the request ({r.status_code})")
            try:
                return r.json()
            except ValueError as e:
                raise SuggestionError("Suggestion service returned a non-JSON body") from e

    def suggest_sections(self, description: str, rates: Mapping[str, float]) -> List[Dict[str, Any]]:
        """Ask the model for sections/items/role-days; returns the raw section dicts."""
        listing = "\n".join(f"- {role}: {price}€/day" for role, price in rates.items())
        payload = {
            "contents": [{"parts": [{"text": PROMPT.format(rates=listing, description=description)}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        }
        data = self.post(f"/models/{self.model}:generateContent", payload)
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
            parsed = json.loads(text)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise SuggestionError("Suggestion service returned an unreadable answer") from e
        sections = parsed.get("sections") if isinstance(parsed, dict) else None
        return sections if isinstance(sections, list) else []


def _details(raw) -> Dict[str, float]:
    # the schema asks for [{role, days}]; a plain {role: days} map is accepted too
    if isinstance(raw, dict):
        pairs = raw.items()
    else:
        pairs = ((d.get("role"), d.get("days")) for d in raw or [] if isinstance(d, dict))
    details: Dict[str, float] = {}
    for role, days in pairs:
        try:
            value = float(days)
        except (TypeError, ValueError):
            continue
        if role and value > 0:
            details[str(role).strip()] = value
    return details


def sections_from_suggestion(sections: List[Dict[str, Any]], id_factory=None) -> list:
    """Turn suggested section dicts into new, unsaved QuoteSection rows."""
    kwargs = {"id_factory": id_factory} if id_factory else {}
    out = []
    for raw in sections or []:
        if not isinstance(raw, dict):
            continue
        section = new_section(sanitize_text(raw.get("title"), TITLE_MAX) or "Nouvelle Phase",
                              with_item=False, **kwargs)
        for raw_item in raw.get("items") or []:
            if not isinstance(raw_item, dict):
                continue
            section.items.append(new_item(
                raw_item.get("description", ""),
                _details(raw_item.get("details")),
                **kwargs,
            ))
        out.append(section)
    return out
