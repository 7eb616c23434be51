"""
config.py - Configuration Module for the Support Rotation

Loads settings from the environment, the rotation state file and the
optional roster CSV (used when Slack is disabled).

Environment:
  SLACK_TOKEN, SLACK_CHANNEL_ID, SLACK_USERGROUP_ID, SLACK_ENABLED,
  SLACK_TIMEOUT, DAYS_PER_ROTATION, ENGINEERS_PER_SHIFT,
  ROTATION_DATA_PATH, ROSTER_PATH
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from support_rotation.state import RotationState

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_ROSTER_PATH = DEFAULT_CONFIG_DIR / "roster.csv"
DEFAULT_STATE_PATH = DEFAULT_DATA_DIR / "rotation.json"
DEFAULT_OUTPUTS_DIR = PROJECT_ROOT / "outputs"


# ---------------------------------------------------------------------------
# Rotation constants
# ---------------------------------------------------------------------------

HISTORY_LIMIT = 30
FORCE_REASSIGN_MAX_ATTEMPTS = 5

# Placeholder roster when Slack is disabled and nothing else is known
DEFAULT_ENGINEERS: List[str] = ["U123456", "U234567", "U345678", "U456789"]

# Status text substrings that mark an engineer out of office
OOO_KEYWORDS = ("ooo", "out of office", "vacation", "holiday", "sick", "ill")

WEEKDAY_ALIASES: Dict[str, str] = {
    "sunday": "sunday", "sun": "sunday",
    "monday": "monday", "mon": "monday",
    "tuesday": "tuesday", "tue": "tuesday", "tues": "tuesday",
    "wednesday": "wednesday", "wed": "wednesday",
    "thursday": "thursday", "thu": "thursday", "thur": "thursday", "thurs": "thursday",
    "friday": "friday", "fri": "friday",
    "saturday": "saturday", "sat": "saturday",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_yes_no(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("yes", "true", "1", "y")


def _parse_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = environ.get(key)
    if raw is None or not str(raw).strip():
        return default
    try:
        return int(str(raw).strip())
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from None


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

@dataclass
class Settings:
    slack_token: Optional[str] = None
    channel_id: str = "cas-dev"
    usergroup_id: str = "cas-engineers"
    days_per_rotation: int = 2
    engineers_per_shift: int = 2
    slack_enabled: bool = True
    slack_timeout: int = 30
    data_path: Path = DEFAULT_STATE_PATH
    roster_path: Path = DEFAULT_ROSTER_PATH

    def validate(self) -> None:
        """Raise ValueError for settings the orchestrator cannot run with."""
        if self.slack_enabled and not self.slack_token:
            raise ValueError("SLACK_TOKEN is required when Slack is enabled")
        if self.days_per_rotation < 1:
            raise ValueError(f"DAYS_PER_ROTATION must be >= 1, got {self.days_per_rotation}")
        if self.engineers_per_shift < 1:
            raise ValueError(f"ENGINEERS_PER_SHIFT must be >= 1, got {self.engineers_per_shift}")


def get_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Build Settings from environment variables (os.environ by default)."""
    env = os.environ if environ is None else environ
    return Settings(
        slack_token=env.get("SLACK_TOKEN") or None,
        channel_id=env.get("SLACK_CHANNEL_ID") or "cas-dev",
        usergroup_id=env.get("SLACK_USERGROUP_ID") or "cas-engineers",
        days_per_rotation=_parse_int(env, "DAYS_PER_ROTATION", 2),
        engineers_per_shift=_parse_int(env, "ENGINEERS_PER_SHIFT", 2),
        # Only the literal "false" disables Slack
        slack_enabled=env.get("SLACK_ENABLED", "true") != "false",
        slack_timeout=_parse_int(env, "SLACK_TIMEOUT", 30),
        data_path=Path(env["ROTATION_DATA_PATH"]) if env.get("ROTATION_DATA_PATH") else DEFAULT_STATE_PATH,
        roster_path=Path(env["ROSTER_PATH"]) if env.get("ROSTER_PATH") else DEFAULT_ROSTER_PATH,
    )


# ---------------------------------------------------------------------------
# Rotation state
# ---------------------------------------------------------------------------

def load_rotation_state(state_path: Optional[Path] = None) -> RotationState:
    """Load rotation state from JSON. Returns empty defaults if file missing."""
    path = Path(state_path) if state_path else DEFAULT_STATE_PATH
    if not path.exists():
        logger.warning(f"Rotation state not found: {path}. Starting with empty rotation.")
        path.parent.mkdir(parents=True, exist_ok=True)
        return RotationState()
    with open(path) as f:
        data = json.load(f)
    state = RotationState.from_dict(data)
    logger.info(
        f"Loaded rotation state from {path}: {len(state.rotation_order)} in order, "
        f"current={state.current_engineers}"
    )
    return state


def save_rotation_state(
    state: RotationState,
    state_path: Optional[Path] = None,
) -> None:
    """Persist rotation state to JSON, replacing the file atomically."""
    path = Path(state_path) if state_path else DEFAULT_STATE_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    with open(tmp_path, "w") as f:
        json.dump(state.to_dict(), f, indent=2)
    os.replace(tmp_path, path)
    logger.info(f"Rotation data saved to {path}")


# ---------------------------------------------------------------------------
# Roster loader
# ---------------------------------------------------------------------------

def load_roster(roster_path: Optional[Path] = None) -> List[str]:
    """
    Load engineer IDs from a roster CSV.

    Expected columns:
      id, name (optional), active (optional, yes/no; default yes)

    Returns active IDs in file order.
    """
    import pandas as pd

    path = Path(roster_path) if roster_path else DEFAULT_ROSTER_PATH
    if not path.exists():
        raise FileNotFoundError(f"Roster file not found: {path}")

    df = pd.read_csv(path, dtype=str).fillna("")
    if "id" not in df.columns:
        raise ValueError(f"Roster file {path} has no 'id' column. Got: {list(df.columns)}")

    engineers: List[str] = []
    for _, row in df.iterrows():
        engineer_id = str(row["id"]).strip()
        if not engineer_id:
            continue
        active = row.get("active", "") or "yes"
        if not _parse_yes_no(active):
            continue
        engineers.append(engineer_id)

    duplicates = sorted({e for e in engineers if engineers.count(e) > 1})
    if duplicates:
        raise ValueError(f"Duplicate engineer ids in {path}: {duplicates}")

    logger.info(f"Loaded {len(engineers)} engineers from {path}")
    return engineers


def load_roster_names(roster_path: Optional[Path] = None) -> Dict[str, str]:
    """Engineer ID → display name from the roster CSV's optional name column."""
    import pandas as pd

    path = Path(roster_path) if roster_path else DEFAULT_ROSTER_PATH
    if not path.exists():
        return {}
    df = pd.read_csv(path, dtype=str).fillna("")
    if "id" not in df.columns or "name" not in df.columns:
        return {}
    return {
        str(row["id"]).strip(): str(row["name"]).strip()
        for _, row in df.iterrows()
        if str(row["id"]).strip() and str(row["name"]).strip()
    }
