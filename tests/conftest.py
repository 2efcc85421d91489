from pathlib import Path
from types import SimpleNamespace

import pytest

from ideafinder.core.models import CandidatePost
from ideafinder.core.storage import SqliteRecordStore


class FakeCompletions:
    """Stands in for ``client.chat.completions``; replays canned replies in order."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=reply))])


@pytest.fixture
def fake_openai():
    def _build(replies):
        completions = FakeCompletions(replies)
        return SimpleNamespace(chat=SimpleNamespace(completions=completions)), completions

    return _build


@pytest.fixture
def store(tmp_path: Path) -> SqliteRecordStore:
    return SqliteRecordStore(tmp_path / "ideas.db")


@pytest.fixture
def make_post():
    def _make(external_id, **overrides):
        values = {
            "title": f"Startup question number {external_id}",
            "body": f"Our startup {external_id} keeps losing customers to slow onboarding.",
            "community": "startups",
            "author": f"author_{external_id}",
            "created_utc": 1_700_000_000.0,
        }
        values.update(overrides)
        return CandidatePost(external_id=external_id, **values)

    return _make


def idea_text(name: str) -> str:
    return (
        f"Business Idea: {name}\n"
        "Problem Story: Founders lose hours every week chasing onboarding emails by hand.\n"
        "Solution Vision: A lightweight tool that automates onboarding follow-ups.\n"
        "Target Customers:\n"
        "- Early-stage founders\n"
        "- Customer success leads\n"
        "Category: SaaS\n"
    )


@pytest.fixture
def make_idea_text():
    return idea_text
