# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
Progress and assessment rules applied to a decrypted vault document.

These functions mutate the document they are given and are meant to run
inside ``vault.service.mutate``.  Milestones are append-only; the
``improvement`` of a new milestone is the previous item count minus the new
one, so a regression shows up as a negative number.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Optional

from vault.service import DEFAULT_TARGET_ITEMS, default_progress

MAX_LABEL_LENGTH = 160
MAX_NOTES_LENGTH = 400
MAX_CHALLENGES = 10
ACTIVE_WINDOW = timedelta(days=30)

RECOMMENDATIONS = {
    "initial": [
        "Start with obvious duplicates (multiple phone chargers, excess clothing)",
        "Focus on expired or broken items first",
        "Tackle one room at a time to avoid overwhelm",
    ],
    "reduction": [
        'Apply the "one year rule" - if unused for a year, consider removing',
        "Look for multi-use alternatives (phone as camera, clock, etc.)",
        "Focus on emotional attachments - address the psychology behind keeping items",
    ],
    "refinement": [
        "Evaluate each item's frequency of use and emotional value",
        "Consider quality over quantity for remaining items",
        "Start thinking about your ideal 50-item list",
    ],
    "optimization": [
        "Make hard choices about sentimental items",
        "Optimize for absolute essentials and joy-bringing items",
        "Create your final 50-item list and stick to it",
    ],
    "maintenance": [
        "Maintain your 50-item lifestyle with mindful consumption",
        "Share your journey to inspire others",
        "Focus on experiences over possessions",
    ],
}

TIMEFRAMES = {
    "initial": "2-3 months",
    "reduction": "3-4 months",
    "refinement": "2-3 months",
    "optimization": "1-2 months",
    "maintenance": "Ongoing",
}


def phase_for_item_count(item_count: float) -> str:
    """Phase after logging a milestone (boundaries are inclusive)."""
    if item_count <= 50:
        return "maintenance"
    if item_count <= 100:
        return "optimization"
    if item_count <= 200:
        return "refinement"
    if item_count <= 500:
        return "reduction"
    return "initial"


def assessment_phase(item_count: float) -> str:
    """Phase assigned by the assessment (boundaries are exclusive)."""
    if item_count > 500:
        return "initial"
    if item_count > 200:
        return "reduction"
    if item_count > 100:
        return "refinement"
    if item_count > 50:
        return "optimization"
    return "maintenance"


def estimated_timeframe(phase: str) -> str:
    return TIMEFRAMES.get(phase, "2-3 months")


def _now_iso(now: Optional[datetime]) -> str:
    return (now or datetime.now(timezone.utc)).isoformat()


def _ensure_progress(document: dict, user_id: str, now_iso: str) -> dict:
    progress = document.get("progress")
    if not isinstance(progress, dict):
        progress = default_progress(user_id, now_iso)
        document["progress"] = progress
    if not isinstance(progress.get("milestones"), list):
        progress["milestones"] = []
    return progress


def append_milestone(
    document: dict,
    user_id: str,
    item_count: float,
    label: str = "",
    notes: str = "",
    now: Optional[datetime] = None,
) -> dict:
    """Append a milestone, update the derived fields and return the milestone."""
    now_iso = _now_iso(now)
    progress = _ensure_progress(document, user_id, now_iso)
    milestones = progress["milestones"]

    previous = milestones[-1] if milestones else None
    improvement = 0
    if isinstance(previous, dict) and isinstance(previous.get("itemCount"), (int, float)):
        improvement = previous["itemCount"] - item_count

    label = (label or "").strip()[:MAX_LABEL_LENGTH]
    milestone = {
        "itemCount": item_count,
        "date": now_iso,
        "label": label or f"Reached {item_count} items",
        "notes": (notes or "").strip()[:MAX_NOTES_LENGTH],
        "improvement": improvement,
    }
    milestones.append(milestone)

    progress["lastUpdate"] = now_iso
    progress["currentItemCount"] = item_count
    progress["currentPhase"] = phase_for_item_count(item_count)
    if not isinstance(progress.get("targetItemCount"), (int, float)):
        progress["targetItemCount"] = DEFAULT_TARGET_ITEMS
    return milestone


def apply_assessment(
    document: dict,
    user_id: str,
    current_items: float,
    lifestyle: Optional[str] = None,
    motivation: Optional[str] = None,
    challenges: Optional[list] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Merge an assessment into the profile and progress.  Returns the
    assessment result (profile, phase, recommendations, timeframe).
    """
    now_iso = _now_iso(now)
    phase = assessment_phase(current_items)
    target = DEFAULT_TARGET_ITEMS if phase == "maintenance" else max(
        DEFAULT_TARGET_ITEMS, math.floor(current_items * 0.6)
    )
    challenge_list = [str(c).strip() for c in (challenges or [])[:MAX_CHALLENGES]]
    challenge_list = [c for c in challenge_list if c]

    existing = document.get("profile") if isinstance(document.get("profile"), dict) else {}
    profile = {
        **existing,
        "userId": user_id,
        "currentItems": current_items,
        "lifestyle": lifestyle or "standard",
        "motivation": motivation or "simplicity",
        "challenges": challenge_list,
        "phase": phase,
        "assessmentDate": now_iso,
        "targetItems": target,
        "updatedAt": now_iso,
    }
    document["profile"] = profile

    progress = _ensure_progress(document, user_id, now_iso)
    progress["currentPhase"] = phase
    progress["currentItemCount"] = current_items
    progress["targetItemCount"] = target
    progress["lastUpdate"] = now_iso

    recommendations = RECOMMENDATIONS[phase]
    return {
        "profile": profile,
        "recommendations": list(recommendations),
        "phase": phase,
        "nextSteps": list(recommendations[:3]),
        "estimatedTimeframe": estimated_timeframe(phase),
    }


def _parse_time(value) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def summarize_progress(
    entries: list[tuple[str, dict]],
    profile_count: int,
    now: Optional[datetime] = None,
) -> dict:
    """Aggregate statistics over cached ``(user_id, progress)`` entries."""
    now = now or datetime.now(timezone.utc)
    total_milestones = 0
    total_reduced = 0
    active_users = 0
    phases: dict[str, int] = {}

    for _user_id, progress in entries:
        milestones = progress.get("milestones") or []
        total_milestones += len(milestones)
        for milestone in milestones:
            improvement = milestone.get("improvement") if isinstance(milestone, dict) else None
            if isinstance(improvement, (int, float)):
                total_reduced += max(0, improvement)

        phase = str(progress.get("currentPhase") or "unknown").lower()
        phases[phase] = phases.get(phase, 0) + 1

        last_update = _parse_time(progress.get("lastUpdate"))
        if last_update is not None and now - last_update <= ACTIVE_WINDOW:
            active_users += 1

    return {
        "totalTrackedUsers": len({user_id for user_id, _ in entries}),
        "profileCount": profile_count,
        "totalMilestones": total_milestones,
        "totalItemsReduced": total_reduced,
        "activeUsers": active_users,
        "phaseDistribution": phases,
        "generatedAt": now.isoformat(),
    }
