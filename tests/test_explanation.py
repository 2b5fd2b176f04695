"""Tests for LLM-backed match explanations, using a stub Anthropic client."""

from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from affinity import llm
from affinity.config import settings
from affinity.errors import InvalidConfiguration
from affinity.explanation import generator
from affinity.explanation.generator import (
    explain_top_matches,
    fallback_explanation,
    generate_explanation,
)
from affinity.llm import _strip_fences, call_llm_json
from affinity.models import Profile
from affinity.scoring.pairwise import score_pair


class FakeMessages:
    def __init__(self, replies: list[str]):
        self.replies = list(replies)
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        text = self.replies.pop(0) if self.replies else "{}"
        return SimpleNamespace(content=[SimpleNamespace(text=text)])


class FakeClient:
    def __init__(self, *replies: str):
        self.messages = FakeMessages(list(replies))


def _pair() -> tuple[Profile, Profile]:
    a = Profile(id="ava", display_name="Ava", age=29, location="94110",
                interests=["hiking", "yoga"], bio="Weekend hiker.")
    b = Profile(id="ben", display_name="Ben", age=31, location="94114",
                interests=["hiking", "coffee"], bio="Trail runner.")
    return a, b


class TestCallLlmJson:
    def test_strips_fences(self):
        assert _strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'
        assert _strip_fences('  {"a": 1} ') == '{"a": 1}'

    def test_parses_object(self):
        client = FakeClient('```json\n{"ok": true}\n```')
        assert call_llm_json(client, "sys", "user") == {"ok": True}
        call = client.messages.calls[0]
        assert call["system"] == "sys"
        assert call["messages"] == [{"role": "user", "content": "user"}]

    def test_bad_json_returns_empty(self):
        assert call_llm_json(FakeClient("not json at all"), "sys", "user") == {}

    def test_non_object_returns_empty(self):
        assert call_llm_json(FakeClient("[1, 2]"), "sys", "user") == {}


class TestGenerateExplanation:
    def test_uses_model_reply(self):
        a, b = _pair()
        record = score_pair(a, b)
        reply = json.dumps({
            "compatibility_reason": "You both love the trails.",
            "shared_interests": ["hiking"],
            "conversation_starters": ["Favorite trail?", "Sunrise or sunset?", "Gear?", "Extra"],
            "meeting_suggestions": ["Hike Twin Peaks", "Coffee", "Museum"],
            "is_high_priority": True,
        })
        client = FakeClient(reply)
        exp = generate_explanation(client, record, a, b)
        assert exp.profile_id == "ava"
        assert exp.match_id == "ben"
        assert exp.generated
        assert exp.compatibility_reason == "You both love the trails."
        assert len(exp.conversation_starters) == 3
        assert len(exp.meeting_suggestions) == 2
        assert exp.is_high_priority

        prompt = client.messages.calls[0]["messages"][0]["content"]
        assert "Name: Ava" in prompt
        assert "Name: Ben" in prompt
        assert "Shared interests: hiking" in prompt
        assert "Never comment on physical appearance" in client.messages.calls[0]["system"]

    def test_empty_reply_falls_back(self):
        a, b = _pair()
        record = score_pair(a, b)
        exp = generate_explanation(FakeClient("{}"), record, b, a)
        assert not exp.generated
        assert exp.profile_id == "ben"
        assert exp.match_id == "ava"
        assert exp.compatibility_reason.startswith("Ava could be a good connection.")
        assert exp.conversation_starters == ["Ask Ava what got them into hiking"]

    def test_rejects_unrelated_record(self):
        a, b = _pair()
        stranger = Profile(id="zoe", interests=["hiking"])
        record = score_pair(a, stranger)
        with pytest.raises(ValueError):
            generate_explanation(FakeClient("{}"), record, a, b)


class TestFallback:
    def test_no_shared_interests(self):
        a = Profile(id="a", display_name="Ann", interests=["golf"])
        b = Profile(id="b", display_name="Bo", interests=["anime"])
        exp = fallback_explanation(score_pair(a, b), a, b)
        assert exp.shared_interests == []
        assert exp.conversation_starters == ["Ask Bo what they like to do on weekends"]
        assert exp.meeting_suggestions == ["Meet for coffee nearby"]


class TestExplainTopMatches:
    def test_limit_and_missing_profiles(self):
        a, b = _pair()
        c = Profile(id="cat", interests=["yoga"], age=30, location="94110")
        records = [score_pair(a, b), score_pair(a, c)]
        client = FakeClient(json.dumps({"compatibility_reason": "Great fit."}))
        out = explain_top_matches(client, a, records, {"ben": b}, limit=5)
        assert [e.match_id for e in out] == ["ben"]
        assert len(client.messages.calls) == 1


class TestDefaultClient:
    def setup_method(self):
        llm.get_client.cache_clear()

    def teardown_method(self):
        llm.get_client.cache_clear()

    def test_missing_api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "anthropic_api_key", "")
        with pytest.raises(InvalidConfiguration):
            llm.get_client()

    def test_client_is_shared(self, monkeypatch):
        monkeypatch.setattr(settings, "anthropic_api_key", "sk-test")
        assert llm.get_client() is llm.get_client()

    def test_explanation_without_client(self, monkeypatch):
        fake = FakeClient(json.dumps({"compatibility_reason": "Trail buddies."}))
        monkeypatch.setattr(generator, "get_client", lambda: fake)
        a, b = _pair()
        exp = generate_explanation(None, score_pair(a, b), a, b)
        assert exp.compatibility_reason == "Trail buddies."
        assert len(fake.messages.calls) == 1
