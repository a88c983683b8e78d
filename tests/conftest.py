"""Shared fixtures: a mocked remote parser endpoint and sample records."""

import json
from datetime import datetime

import httpx
import pytest

from tapmoney.config import ParserSettings
from tapmoney.models.expense import CIVIL_TIMEZONE, ExpenseRecord


ENDPOINT = "https://parser.test/"


class FakeEndpoint:
    """
    Scripted stand-in for the remote parser.

    Each request pops the next scripted response; the last one repeats.
    A scripted exception is raised instead of answering.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def prompts(self) -> list[str]:
        return [json.loads(r.content)["prompt"] for r in self.requests]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def envelope(data=None, raw=None, status_code=200) -> httpx.Response:
    return httpx.Response(status_code, json={"data": data, "raw": raw})


def wire_expense(**overrides) -> dict:
    payload = {
        "icon": "🍱",
        "title": "便當",
        "amount": 120,
        "category": "food",
        "timestamp": "2025-05-20T12:30+08:00",
        "note": None,
    }
    payload.update(overrides)
    return payload


def make_record(title="便當", amount=120, category="food", when=None, icon="🍱", note=None):
    return ExpenseRecord(
        icon=icon,
        title=title,
        amount=amount,
        category=category,
        timestamp=when or datetime(2025, 5, 20, 12, 30, tzinfo=CIVIL_TIMEZONE),
        note=note,
    )


@pytest.fixture
def parser_settings() -> ParserSettings:
    return ParserSettings(
        endpoint_url=ENDPOINT,
        timeout_seconds=5,
        diagnostics_enabled=True,
        strict_timestamps=False,
    )
