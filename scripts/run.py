#!/usr/bin/env python3
"""Posh Notifier — Application Runner.

Checks that credentials and settings are in place, then starts the app.

Usage:
    python scripts/run.py
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

REQUIRED_ENV_VARS = ("TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID")
SETTINGS_FILE = PROJECT_ROOT / "config" / "settings.yaml"


def preflight_checks() -> list[str]:
    """Return a list of problems that would stop the app from starting."""
    os.chdir(str(PROJECT_ROOT))
    load_dotenv(PROJECT_ROOT / ".env")

    problems = [f"{var} is not set" for var in REQUIRED_ENV_VARS if not os.environ.get(var)]
    if not SETTINGS_FILE.exists():
        problems.append(f"{SETTINGS_FILE.relative_to(PROJECT_ROOT)} not found")
    return problems


def main() -> None:
    problems = preflight_checks()
    if problems:
        for problem in problems:
            print(f"❌ {problem}")
        sys.exit(1)

    from posh_notifier.main import main as app_main
    sys.exit(app_main())


if __name__ == "__main__":
    main()
