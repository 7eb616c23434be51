#!/usr/bin/env python3
"""
Manage engineers' non-working days

Usage:
  python scripts/manage_non_working_days.py --action add_recurring_days \
      --user-id U123456 --days friday
  python scripts/manage_non_working_days.py --action clear_non_working_days --user-id U123456
"""

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from support_rotation.manage_availability import main

if __name__ == "__main__":
    main()
