#!/usr/bin/env python3
"""
Run the support rotation (assign / force_reassign / skip / report)

Usage:
  python scripts/run_rotation.py
  python scripts/run_rotation.py --action skip --user-id U123456
  python scripts/run_rotation.py --action report --visual

Reads SLACK_TOKEN, SLACK_ENABLED, DAYS_PER_ROTATION, ... from the environment.
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from support_rotation.assign import main

if __name__ == "__main__":
    main()
