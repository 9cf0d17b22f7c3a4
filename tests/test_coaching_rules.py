# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""Tests for the pure coaching helpers: prompts, progress rules, limits, memory."""
import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from coaching import prompts
from coaching.limits import SlidingWindowRateLimiter
from coaching.llm import CompletionClient, stream_completion
from coaching.memory import ExchangeMemory
from coaching.progress import (
    append_milestone,
    apply_assessment,
    assessment_phase,
    phase_for_item_count,
    summarize_progress,
)
from core.errors import ModelUnavailable

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


# --- Phases ---

class TestPhases:

    @pytest.mark.parametrize("count, phase", [
        (50, "maintenance"), (51, "optimization"), (100, "optimization"),
        (200, "refinement"), (500, "reduction"), (501, "initial"),
    ])
    def test_milestone_phase_boundaries_inclusive(self, count, phase):
        assert phase_for_item_count(count) == phase

    @pytest.mark.parametrize("count, phase", [
        (50, "maintenance"), (51, "optimization"), (101, "refinement"),
        (201, "reduction"), (500, "reduction"), (501, "initial"),
    ])
    def test_assessment_phase_boundaries_exclusive(self, count, phase):
        assert assessment_phase(count) == phase


class TestMilestones:

    def test_first_milestone_has_no_improvement(self):
        document = {}
        milestone = append_milestone(document, "u1", 400, now=NOW)
        assert milestone["improvement"] == 0
        assert milestone["label"] == "Reached 400 items"
        assert document["progress"]["currentItemCount"] == 400
        assert document["progress"]["targetItemCount"] == 50

    def test_improvement_is_previous_minus_new(self):
        document = {}
        append_milestone(document, "u1", 400, now=NOW)
        milestone = append_milestone(document, "u1", 310, label="Kitchen", now=NOW)
        assert milestone["improvement"] == 90
        assert len(document["progress"]["milestones"]) == 2

    def test_assessment_keeps_existing_profile_fields(self):
        document = {"profile": {"name": "Maya", "preferredApproach": "direct"}}
        result = apply_assessment(document, "u1", 1000, challenges=["books"], now=NOW)
        assert result["phase"] == "initial"
        assert result["profile"]["targetItems"] == 600
        assert document["profile"]["name"] == "Maya"
        assert document["profile"]["preferredApproach"] == "direct"
        assert document["progress"]["currentPhase"] == "initial"


class TestSummary:

    def test_aggregate(self):
        entries = [
            ("u1", {"currentPhase": "Reduction", "lastUpdate": NOW.isoformat(),
                    "milestones": [{"improvement": 0}, {"improvement": 40}, {"improvement": -10}]}),
            ("u2", {"currentPhase": "initial", "lastUpdate": (NOW - timedelta(days=45)).isoformat(),
                    "milestones": []}),
        ]
        summary = summarize_progress(entries, profile_count=1, now=NOW)
        assert summary["totalTrackedUsers"] == 2
        assert summary["totalMilestones"] == 3
        assert summary["totalItemsReduced"] == 40
        assert summary["activeUsers"] == 1
        assert summary["phaseDistribution"] == {"reduction": 1, "initial": 1}


# --- Prompts ---

class TestPrompts:

    def test_crisis_takes_precedence(self):
        state = prompts.detect_emotional_state("I'm overwhelmed and want to give up")
        assert state.state == "crisis"
        assert state.crisis is True

    def test_no_emotion(self):
        assert prompts.detect_emotional_state("What about books?").state is None

    @pytest.mark.parametrize("message, mode, expected", [
        ("anything", "assessment", "question"),
        ("anything", "decision", "direct"),
        ("Please hold me accountable", "general", "direct"),
        ("Should I keep it?", "general", "question"),
        ("Show me the numbers", "general", "logical"),
        ("I cleared a shelf", "general", "supportive"),
    ])
    def test_approach(self, message, mode, expected):
        assert prompts.determine_coaching_approach(message, mode) == expected

    def test_profile_preference_wins(self):
        profile = {"preferredApproach": "Analytical please"}
        assert prompts.determine_coaching_approach("hi", "general", profile) == "logical"

    def test_crisis_generation_settings(self):
        generation = prompts.generation_settings("general", "supportive", "crisis", True)
        assert generation["temperature"] == 0.45
        assert generation["max_tokens"] >= 220

    def test_template_for_mode(self):
        assert prompts.template_for_mode("assessment") == prompts.ASSESSMENT_TEMPLATE
        assert prompts.template_for_mode("decision_support") == prompts.DECISION_TEMPLATE
        assert prompts.template_for_mode(None) == prompts.GENERAL_TEMPLATE

    def test_build_prompt_includes_crisis_protocol(self):
        context = prompts.PromptContext(crisis=True, emotion="crisis", emotion_directive="Ground them.")
        prompt = prompts.build_prompt(prompts.GENERAL_TEMPLATE, context, "I give up")
        assert prompts.CRISIS_PROTOCOL in prompt
        assert "Human: I give up" in prompt

    def test_build_prompt_tolerates_wrong_nested_types(self):
        context = prompts.PromptContext(
            profile={"challenges": "clutter"},
            progress={"milestones": {"a": 1}, "metrics": 7},
            computed={"metrics": 5, "improvementPercent": 40},
        )
        prompt = prompts.build_prompt(prompts.GENERAL_TEMPLATE, context, "hi")
        assert "0 milestones tracked" in prompt
        assert "journey completion 40%" in prompt
        assert "Challenges" not in prompt

    def test_non_string_mode_uses_general(self):
        assert prompts.template_for_mode(5) == prompts.GENERAL_TEMPLATE
        assert prompts.determine_coaching_approach("I cleared a shelf", 5) == "supportive"
        assert prompts.generation_settings(5, "supportive", None, False)["max_tokens"] == 190


# --- Rate limiting ---

class TestSlidingWindowRateLimiter:

    def test_rejects_over_limit_then_recovers(self):
        limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=10)
        assert limiter.check("ip", now=0.0) is True
        assert limiter.check("ip", now=1.0) is True
        assert limiter.check("ip", now=2.0) is False
        assert limiter.check("ip", now=10.5) is True

    def test_keys_are_independent(self):
        limiter = SlidingWindowRateLimiter(max_requests=1, window_seconds=10)
        assert limiter.check("a", now=0.0) is True
        assert limiter.check("b", now=0.0) is True
        assert limiter.check("a", now=0.0) is False

    def test_idle_keys_are_dropped(self):
        limiter = SlidingWindowRateLimiter(max_requests=3, window_seconds=1)
        for index in range(1000):
            limiter.check(f"ip-{index}", now=0.0)
        assert limiter.tracked_keys() == 1000
        assert limiter.check("late", now=100.0) is True
        assert limiter.tracked_keys() == 1

    def test_busy_keys_survive_sweep(self):
        limiter = SlidingWindowRateLimiter(max_requests=2, window_seconds=10)
        limiter.check("busy", now=0.0)
        limiter.check("busy", now=9.0)
        limiter.check("idle", now=0.5)
        assert limiter.check("other", now=12.0) is True
        assert limiter.tracked_keys() == 2
        assert limiter.check("busy", now=12.0) is True
        assert limiter.check("busy", now=12.5) is False


# --- Memory ---

class TestExchangeMemory:

    def test_remembers_last_exchange_clipped(self):
        memory = ExchangeMemory()
        memory.remember("u1", "x" * 300, "short answer")
        context = memory.context_for("u1")
        assert "x" * 100 in context
        assert "x" * 101 not in context
        assert "short answer" in context

    def test_forget(self):
        memory = ExchangeMemory()
        memory.remember("u1", "q", "a")
        memory.forget("u1")
        assert memory.context_for("u1") == ""

    def test_entries_expire(self):
        memory = ExchangeMemory(ttl_seconds=60)
        memory.remember("u1", "q", "a", now=0.0)
        assert memory.context_for("u1", now=59.0)
        assert memory.context_for("u1", now=60.0) == ""
        assert len(memory) == 0

    def test_stale_entries_pruned_on_write(self):
        memory = ExchangeMemory(ttl_seconds=60)
        for index in range(100):
            memory.remember(f"anonymous:{index}", "q", "a", now=0.0)
        memory.remember("fresh", "q", "a", now=120.0)
        assert len(memory) == 1

    def test_oldest_write_evicted_at_capacity(self):
        memory = ExchangeMemory(ttl_seconds=3600, max_entries=2)
        memory.remember("a", "q", "a", now=0.0)
        memory.remember("b", "q", "a", now=1.0)
        memory.remember("a", "q2", "a2", now=2.0)
        memory.remember("c", "q", "a", now=3.0)
        assert len(memory) == 2
        assert memory.context_for("b", now=3.0) == ""
        assert "q2" in memory.context_for("a", now=3.0)


# --- Completion client ---

class TestCompletionClient:

    def test_parse_event(self):
        assert CompletionClient._parse_event('data: {"choices": [{"text": "Hi"}]}') == "Hi"
        assert CompletionClient._parse_event("data: [DONE]") is None
        assert CompletionClient._parse_event(": keep-alive") == ""

    def test_parse_event_garbage(self):
        with pytest.raises(ModelUnavailable):
            CompletionClient._parse_event("data: {not json")

    def test_offline_reply_is_chunked(self):
        client = CompletionClient("http://127.0.0.1:1", "test-model", offline=True)
        chunks = list(client.stream("prompt", {}))
        assert len(chunks) > 1
        assert client.complete("prompt", {}) == "".join(chunks).strip()

    def test_unreachable_server(self):
        client = CompletionClient("http://127.0.0.1:1", "test-model", timeout=1.0)
        with pytest.raises(ModelUnavailable):
            list(client.stream("prompt", {}))


class _EndlessClient:
    """Yields chunks until closed; records how far it got."""

    def __init__(self):
        self.sent = 0
        self.closed = False

    def stream(self, prompt, generation):
        try:
            while True:
                self.sent += 1
                yield f"chunk-{self.sent} "
        finally:
            self.closed = True


class TestStreamCompletion:

    def test_closing_early_stops_generation(self):
        model = _EndlessClient()

        async def _take_one():
            stream = stream_completion(model, "prompt", {})
            first = await stream.__anext__()
            await stream.aclose()
            return first

        assert asyncio.run(_take_one()) == "chunk-1 "
        assert model.closed is True
        assert model.sent == 1

    def test_runs_to_completion(self):
        client = CompletionClient("http://127.0.0.1:1", "test-model", offline=True)

        async def _take_all():
            return [chunk async for chunk in stream_completion(client, "prompt", {})]

        assert "".join(asyncio.run(_take_all())) == "".join(client.stream("prompt", {}))
