"""
engine.py - Support Rotation Engine

Core algorithm: fixed circular rotation order with a wraparound anchor.

  order     = [A, B, C, D]     shuffled once, then stable
  eligible  = order ∩ roster − skipList   (order preserved)
  start     = position after the last current engineer (0 if not eligible)
  pick      = eligible[start], eligible[start+1], ... (mod len), no repeats

Commit (update_rotation) timestamps the pick, appends history (last 30 kept)
and clears served engineers from the skip list.

Starvation guard: nothing eligible after the skip list -> take the first
`count` engineers of the roster directly so duty is never left uncovered.
Those engineers bypass the rotation order, so the guard is logged.
"""

import logging
import math
import random
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from support_rotation.config import FORCE_REASSIGN_MAX_ATTEMPTS, HISTORY_LIMIT
from support_rotation.state import RotationState

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Shuffle
# ---------------------------------------------------------------------------

def shuffle_in_place(items: List[str], rng: Optional[random.Random] = None) -> List[str]:
    """Fisher-Yates shuffle. `rng` defaults to the `random` module."""
    rng = rng or random
    for i in range(len(items) - 1, 0, -1):
        j = rng.randint(0, i)
        items[i], items[j] = items[j], items[i]
    return items


# ---------------------------------------------------------------------------
# Core: selection
# ---------------------------------------------------------------------------

def get_next_engineers(
    state: RotationState,
    available_engineers: Sequence[str],
    count: int,
    rng: Optional[random.Random] = None,
) -> List[str]:
    """
    Pick the next `count` engineers in rotation order.

    Args:
        state:               Rotation state. Only rotation_order is written,
                             and only when it is empty (bootstrap).
        available_engineers: Eligible roster for the rotation window.
        count:               Engineers per shift.
        rng:                 Randomness source for the bootstrap shuffle.

    Returns:
        Selected engineer IDs in traversal order, no duplicates. Fewer than
        `count` when not enough engineers are eligible.
    """
    if not state.rotation_order:
        state.rotation_order = shuffle_in_place(list(dict.fromkeys(available_engineers)), rng)
        logger.info(f"Initialised rotation order: {state.rotation_order}")

    roster = set(available_engineers)
    skipped = set(state.skip_list)
    eligible = [e for e in state.rotation_order if e in roster and e not in skipped]

    if not eligible:
        fallback = list(dict.fromkeys(available_engineers))[:count]
        if fallback:
            logger.warning(
                f"No eligible engineers in rotation order (skip list={state.skip_list}); "
                f"falling back to roster order: {fallback}"
            )
        return fallback

    if len(eligible) < count:
        logger.warning(f"Only {len(eligible)} eligible engineer(s) for {count} slot(s): {eligible}")
        return list(eligible)

    n = len(eligible)
    start = 0
    if state.current_engineers:
        last = state.current_engineers[-1]
        if last in eligible:
            start = (eligible.index(last) + 1) % n

    selected: List[str] = []
    pos = start
    for _ in range(count):
        selected.append(eligible[pos])
        pos = (pos + 1) % n
        if pos == start:
            break

    # Defensive backfill; unreachable while len(eligible) >= count
    for engineer in available_engineers:
        if len(selected) >= count:
            break
        if engineer not in selected:
            selected.append(engineer)

    logger.debug(f"Selected {selected} (start={start}, eligible={eligible})")
    return selected


# ---------------------------------------------------------------------------
# Core: commit
# ---------------------------------------------------------------------------

def update_rotation(
    state: RotationState,
    new_engineers: Sequence[str],
    now: Optional[datetime] = None,
) -> RotationState:
    """
    Commit a selection: timestamp it, replace current engineers, append
    history (capped at HISTORY_LIMIT) and clear served engineers from the
    skip list. Every call adds a history entry.
    """
    now = now or datetime.now(timezone.utc)
    state.last_rotation_date = now.isoformat()
    state.current_engineers = list(new_engineers)

    state.history.append({
        "date": state.last_rotation_date,
        "engineers": list(new_engineers),
    })
    if len(state.history) > HISTORY_LIMIT:
        state.history = state.history[-HISTORY_LIMIT:]

    served = set(new_engineers)
    state.skip_list = [e for e in state.skip_list if e not in served]

    logger.info(f"Rotation updated: {state.current_engineers} at {state.last_rotation_date}")
    return state


def skip_user(state: RotationState, user_id: str) -> RotationState:
    """Add `user_id` to the skip list (no-op if already present)."""
    if user_id not in state.skip_list:
        state.skip_list.append(user_id)
        logger.info(f"Added {user_id} to skip list")
    return state


# ---------------------------------------------------------------------------
# Force reassign
# ---------------------------------------------------------------------------

def force_reassign(
    state: RotationState,
    available_engineers: Sequence[str],
    count: int,
    rng: Optional[random.Random] = None,
    max_attempts: int = FORCE_REASSIGN_MAX_ATTEMPTS,
) -> List[str]:
    """
    Pick engineers, trying for a different set than the current one.

    After each pick the rotation order is reshuffled when more engineers are
    available than needed; otherwise the first pick is final. Gives up after
    `max_attempts` and returns the last pick.
    """
    current = set(state.current_engineers)
    attempts = 0
    while True:
        selected = get_next_engineers(state, available_engineers, count, rng=rng)
        can_reshuffle = len(available_engineers) > count
        if can_reshuffle:
            shuffle_in_place(state.rotation_order, rng)
        attempts += 1

        if attempts >= max_attempts or not can_reshuffle:
            break
        if not _same_members(selected, current):
            break
        logger.debug(f"Attempt {attempts}: {selected} matches current assignment, retrying")

    logger.info(f"Force reassign picked {selected} after {attempts} attempt(s)")
    return selected


def _same_members(selected: Sequence[str], current: set) -> bool:
    return len(selected) == len(current) and set(selected) == current


# ---------------------------------------------------------------------------
# Fairness Metrics
# ---------------------------------------------------------------------------

def calculate_fairness_metrics(
    history: List[Dict[str, Any]],
    engineers: Optional[Sequence[str]] = None,
) -> Dict[str, Any]:
    """
    Per-engineer assignment counts over the recorded history.

    Args:
        history:   RotationState.history entries ({date, engineers}).
        engineers: Engineers to report on. Defaults to everyone in history.
                   Engineers outside this list are counted under 'other'.

    Returns:
        {
          mean, std, cv, min, max,
          counts: {engineer: int},
          last_served: {engineer: iso-timestamp | None},
          rotations: int,
          other: int,
        }
    """
    if engineers is None:
        engineers = list(dict.fromkeys(e for entry in history for e in entry.get("engineers", [])))

    counts: Dict[str, int] = {e: 0 for e in engineers}
    last_served: Dict[str, Optional[str]] = {e: None for e in engineers}
    other = 0

    for entry in history:
        for engineer in entry.get("engineers", []):
            if engineer not in counts:
                other += 1
                continue
            counts[engineer] += 1
            last_served[engineer] = entry.get("date")

    values = list(counts.values())
    mean_val = sum(values) / len(values) if values else 0.0
    variance = sum((v - mean_val) ** 2 for v in values) / len(values) if values else 0.0
    std_val = math.sqrt(variance)
    cv = (std_val / mean_val * 100) if mean_val > 0 else 0.0

    return {
        "mean": mean_val,
        "std": std_val,
        "cv": cv,
        "min": min(values) if values else 0,
        "max": max(values) if values else 0,
        "counts": counts,
        "last_served": last_served,
        "rotations": len(history),
        "other": other,
    }
