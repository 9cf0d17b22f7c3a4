# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Prompt assembly for the coaching model.

Everything here is pure: message text and structured context in, strings
and numbers out.  Nothing talks to the model or the vault, so the whole
module is testable without either.

Pipeline used by the chat endpoints:

    approach  = determine_coaching_approach(message, mode, profile, computed)
    emotion   = detect_emotional_state(message)
    context   = PromptContext(..., approach_directive=approach_directive(approach, emotion.state))
    prompt    = build_prompt(template_for_mode(mode), context, message)
    settings  = generation_settings(mode, approach, emotion.state, emotion.crisis)
"""

import re
from dataclasses import dataclass, field
from typing import Any, Optional

# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

GENERAL_TEMPLATE = """\
You are an extreme minimalism coach helping people reach a 50-item lifestyle.
You give psychological support, practical guidance and help with decisions.

Principles:
- Address the psychology behind attachment to objects
- Give specific, actionable advice
- Work in phases: 500, 200, 100, then 50 items
- Notice emotional difficulty and respond to it
- Suggest multi-use alternatives to single-purpose items

Style: supportive but direct, like a professional life coach."""

ASSESSMENT_TEMPLATE = """\
You are a patient minimalism assessment coach running an intake conversation.

Objectives:
- Explain what the assessment is for and build trust
- Ask about current item count, lifestyle and living space
- Surface emotional attachments, decision habits and likely obstacles
- Suggest how to capture metrics such as item counts and milestones
- Summarize the profile and recommend a phase: initial, reduction,
  refinement, optimization or maintenance

Style: warm and methodical.  One focused question at a time."""

DECISION_TEMPLATE = """\
You are a decisive minimalism coach for keep-or-let-go decisions.

Priorities:
- Pin down the item or category being considered
- Probe utility, emotional value, frequency of use and alternatives
- Offer a framework: one-in-one-out, the 90-day rule, multi-use substitution
- Give a short keep, donate or store recommendation with reasons
- End with a follow-up action such as scheduling a drop-off or logging it

Style: direct and action-oriented.  One decision per exchange."""

CRISIS_PROTOCOL = (
    "Crisis Protocol: Offer reassurance, ensure emotional safety, suggest one grounding "
    "action, and invite them to reach out for extra support. Avoid overwhelming tasks."
)

STOP_SEQUENCES = ["\n\nHuman:", "\nUser:", "\nCoach:", "Human:", "User:", "Coach:"]

_DECISION_MODES = {"decision", "decision_support", "decision-support"}


def _normalize_mode(mode: Any) -> str:
    return str(mode or "").strip().lower()


def template_for_mode(mode: Optional[str]) -> str:
    normalized = _normalize_mode(mode)
    if normalized == "assessment":
        return ASSESSMENT_TEMPLATE
    if normalized in _DECISION_MODES:
        return DECISION_TEMPLATE
    return GENERAL_TEMPLATE


# ---------------------------------------------------------------------------
# Coaching approach
# ---------------------------------------------------------------------------

APPROACH_ALIASES = {
    "supportive": ("supportive", "gentle", "warm", "empathic"),
    "direct": ("direct", "challenging", "tough-love", "firm"),
    "question": ("questions", "question", "inquiry", "coaching"),
    "logical": ("logical", "rational", "analytical", "evidence"),
}


def normalize_approach(value: Any) -> str:
    lower = str(value or "").lower()
    for approach, aliases in APPROACH_ALIASES.items():
        if any(alias in lower for alias in aliases):
            return approach
    return "supportive"


def determine_coaching_approach(
    message: str,
    mode: Optional[str] = None,
    profile: Optional[dict] = None,
    computed: Optional[dict] = None,
) -> str:
    normalized_mode = _normalize_mode(mode)
    if normalized_mode == "assessment":
        return "question"
    if normalized_mode in _DECISION_MODES:
        return "direct"

    if isinstance(profile, dict) and profile.get("preferredApproach"):
        return normalize_approach(profile["preferredApproach"])
    if isinstance(computed, dict) and computed.get("preferredApproach"):
        return normalize_approach(computed["preferredApproach"])

    text = str(message or "").lower()
    if "hold me accountable" in text or "push me" in text or "challenge" in text:
        return "direct"
    if "?" in text or re.search(r"(can you|could you|should i|what should)$", text):
        return "question"
    if any(word in text for word in ("data", "metrics", "numbers", "plan")):
        return "logical"
    return "supportive"


def approach_directive(approach: str, emotional_state: Optional[str]) -> str:
    if approach == "direct":
        return ("Adopt a firm, accountability-driven tone. Give clear directives, set deadlines, "
                "and highlight consequences of inaction.")
    if approach == "question":
        return ("Use a Socratic coaching style. Ask up to two focused questions before offering "
                "a concise recommendation.")
    if approach == "logical":
        return ("Lean on logical reasoning, data points, and cost-benefit framing. Minimize "
                "emotional language unless needed to validate.")
    if emotional_state == "resistance":
        return ("Stay gentle but confident. Normalize setbacks and co-create a very small next "
                "action to regain momentum.")
    return ("Lead with empathy and validation. Offer encouragement and break guidance into "
            "manageable steps.")


# ---------------------------------------------------------------------------
# Emotional state
# ---------------------------------------------------------------------------

CRISIS_KEYWORDS = ("give up", "quit", "can't go on", "done with this", "hopeless", "panic", "breakdown")

# Checked in order; the first matching state wins
EMOTION_KEYWORDS = (
    ("overwhelm", ("overwhelmed", "stressed", "anxious", "burned out", "burnt out",
                   "too much", "can't handle", "exhausted")),
    ("resistance", ("stuck", "resistant", "don't want", "refuse", "annoyed", "frustrated")),
    ("excitement", ("excited", "motivated", "energized", "pumped", "ready")),
    ("celebration", ("celebrate", "proud", "happy", "win", "milestone")),
)

EMOTION_DIRECTIVES = {
    "crisis": ("User is in crisis or considering quitting. Respond with grounding, validation, "
               "and immediate micro-steps. Encourage a short break, breathing exercise, and "
               "remind them of previous wins."),
    "overwhelm": ("User feels overwhelmed. Slow the pace, validate feelings, and offer one tiny "
                  "actionable next step."),
    "resistance": ("User shows resistance. Explore the root gently, acknowledge the challenge, "
                   "and negotiate a low-friction action."),
    "excitement": ("User is excited. Celebrate the momentum and channel it into a concrete "
                   "milestone or stretch goal."),
    "celebration": ("User is celebrating. Mirror their enthusiasm, highlight progress, and "
                    "suggest a way to lock in the win."),
}


@dataclass(frozen=True)
class EmotionalState:
    state: Optional[str] = None
    directive: Optional[str] = None
    crisis: bool = False


def detect_emotional_state(message: str) -> EmotionalState:
    lower = str(message or "").lower()
    if any(keyword in lower for keyword in CRISIS_KEYWORDS):
        return EmotionalState("crisis", EMOTION_DIRECTIVES["crisis"], True)
    for state, keywords in EMOTION_KEYWORDS:
        if any(keyword in lower for keyword in keywords):
            return EmotionalState(state, EMOTION_DIRECTIVES[state], False)
    return EmotionalState()


# ---------------------------------------------------------------------------
# Generation settings
# ---------------------------------------------------------------------------


def generation_settings(
    mode: Optional[str],
    approach: str,
    emotional_state: Optional[str],
    crisis: bool,
) -> dict:
    """Sampling parameters tuned per mode, approach and mood."""
    normalized = _normalize_mode(mode)
    top_p = 0.9
    if normalized == "assessment":
        temperature, max_tokens = 0.6, 220
    elif normalized in _DECISION_MODES:
        temperature, max_tokens = 0.55, 170
    elif normalized == "emergency":
        temperature, max_tokens = 0.5, 210
    else:
        temperature, max_tokens = 0.63, 190

    if approach == "direct":
        temperature -= 0.05
        top_p = 0.88
    elif approach == "question":
        temperature += 0.05
        top_p = 0.92
    elif approach == "logical":
        temperature = max(0.5, temperature - 0.08)
        top_p = 0.87

    if emotional_state == "overwhelm":
        temperature = max(0.5, temperature - 0.05)
        max_tokens += 20
    elif emotional_state in ("excitement", "celebration"):
        temperature = min(0.75, temperature + 0.05)

    if crisis:
        temperature = 0.45
        top_p = 0.85
        max_tokens = max(max_tokens, 220)

    return {
        "temperature": round(temperature, 2),
        "max_tokens": int(round(max_tokens)),
        "top_p": round(top_p, 2),
    }


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------


@dataclass
class PromptContext:
    """Structured context merged into the prompt.  Every field is optional."""

    profile: Optional[dict] = None
    progress: Optional[dict] = None
    computed: Optional[dict] = None
    goals: list = field(default_factory=list)
    recent_chat: list = field(default_factory=list)
    mode: Optional[str] = None
    approach: Optional[str] = None
    approach_directive: Optional[str] = None
    emotion: Optional[str] = None
    emotion_directive: Optional[str] = None
    crisis: bool = False
    session_context: str = ""


def _first_present(*values, default=None):
    for value in values:
        if value is not None and value != "":
            return value
    return default


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _profile_line(profile: dict, computed: dict) -> str:
    metrics = _as_dict(computed.get("metrics"))
    name = _first_present(profile.get("name"), profile.get("userId"), default="Minimalism client")
    phase = _first_present(profile.get("phase"), computed.get("phaseLabel"), default="unspecified")
    current = _first_present(profile.get("currentItems"), metrics.get("currentItems"), default="unknown")
    target = _first_present(profile.get("targetItems"), metrics.get("targetItems"), default="50")
    lifestyle = _first_present(profile.get("lifestyle"), computed.get("lifestyleLabel"),
                               default="not provided")
    motivation = _first_present(profile.get("motivation"), default="clarity and simplicity")
    challenges = profile.get("challenges") or computed.get("challenges") or []

    line = (f"User Profile: {name}, Phase: {phase}, Current Items: {current}, Target: {target}, "
            f"Lifestyle: {lifestyle}, Motivation: {motivation}")
    if isinstance(challenges, list) and challenges:
        line += f", Challenges: {', '.join(str(c) for c in challenges)}"
    return line


def _progress_line(progress: dict) -> str:
    milestones = progress.get("milestones")
    if not isinstance(milestones, list):
        milestones = []
    current = progress.get("currentItemCount")
    if current is None:
        current = _as_dict(progress.get("metrics")).get("currentItems")
    bits = [f"{len(milestones)} milestones tracked"]
    if progress.get("currentPhase"):
        bits.append(f"phase {progress['currentPhase']}")
    if current is not None:
        bits.append(f"current items {current}")
    if progress.get("lastUpdate"):
        bits.append(f"last update {progress['lastUpdate']}")
    return "Progress: " + ", ".join(bits)


def _metrics_lines(computed: dict) -> list[str]:
    metrics = _as_dict(computed.get("metrics"))
    parts = []
    if isinstance(computed.get("improvementPercent"), (int, float)):
        parts.append(f"journey completion {computed['improvementPercent']}%")
    if metrics.get("startItems") is not None:
        parts.append(f"started with {metrics['startItems']} items")
    if metrics.get("currentItems") is not None:
        parts.append(f"currently {metrics['currentItems']} items")
    if metrics.get("targetItems") is not None:
        parts.append(f"target {metrics['targetItems']} items")

    lines = []
    if parts:
        lines.append("Journey Metrics: " + ", ".join(parts))
    if computed.get("phaseLabel"):
        lines.append(f"Dashboard Phase Label: {computed['phaseLabel']}")
    return lines


def _goal_text(goal: Any) -> str:
    if isinstance(goal, dict):
        return str(goal.get("text") or "")
    return str(goal)


def _chat_entry(entry: Any) -> str:
    if not isinstance(entry, dict):
        return str(entry)[:80]
    return f"{entry.get('role', 'user')}: {str(entry.get('content') or '')[:80]}"


def build_prompt(template: str, context: PromptContext, message: str) -> str:
    """
    Render *template*, the structured *context* and the user's *message*
    into the single text prompt the completion model expects.
    """
    lines = [template.strip(), ""]

    profile = context.profile if isinstance(context.profile, dict) else None
    computed = context.computed if isinstance(context.computed, dict) else None
    if profile is not None or computed is not None:
        lines.append(_profile_line(profile or {}, computed or {}))
    if isinstance(context.progress, dict):
        lines.append(_progress_line(context.progress))
    if computed is not None:
        lines.extend(_metrics_lines(computed))
    if context.goals:
        lines.append("Goals: " + "; ".join(_goal_text(goal) for goal in context.goals))
    if context.approach_directive:
        lines.append(f"Preferred Coaching Approach: {context.approach}. {context.approach_directive}")
    if context.emotion_directive:
        lines.append(f"Emotional Focus: {context.emotion or 'emotional context'}. {context.emotion_directive}")
    if context.crisis:
        lines.append(CRISIS_PROTOCOL)
    if context.recent_chat:
        lines.append("Recent Conversation: " + " | ".join(_chat_entry(e) for e in context.recent_chat))
    if context.mode:
        lines.append(f"Engagement Mode: {context.mode}")
    if context.session_context:
        lines.append(f"Context: {context.session_context}")

    lines.append(f"Human: {message}")
    lines.append("")
    lines.append("Respond as the minimalism coach:")
    return "\n".join(lines)
