#!/usr/bin/env python3
"""
Environment check for deploys: required keys, provider availability and
the store the API will pick.
Usage: python scripts/check_env.py [--probe-db] [--warn-optional]
"""
from __future__ import annotations

import argparse
import os
import sys
from typing import Iterable, List, Tuple

ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from brezcode.config import settings  # noqa: E402

# Each tuple is satisfied when any one key in it is set.
REQUIRED: List[Tuple[str, ...]] = [
    ("ENV",),
    ("DATABASE_URL",),
    ("ANTHROPIC_API_KEY", "OPENAI_API_KEY"),
]

OPTIONAL = [
    "PRIMARY_MODEL",
    "BACKUP_MODEL",
    "LLM_TIMEOUT_SECONDS",
    "CLEANUP_ABANDONED_HOURS",
    "CLEANUP_INTERVAL_MINUTES",
]


def _is_set(key: str) -> bool:
    return bool((os.getenv(key) or "").strip())


def missing_groups(groups: Iterable[Tuple[str, ...]]) -> List[str]:
    return [" | ".join(g) for g in groups if not any(_is_set(k) for k in g)]


def provider_report() -> List[str]:
    lines = [
        f"primary ({settings.PRIMARY_MODEL}): {'configured' if settings.ANTHROPIC_API_KEY else 'missing key'}",
        f"backup ({settings.BACKUP_MODEL}): {'configured' if settings.OPENAI_API_KEY else 'missing key'}",
    ]
    if not (settings.ANTHROPIC_API_KEY or settings.OPENAI_API_KEY):
        lines.append("no provider configured: every reply will be a canned fallback")
    return lines


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate environment for the training API.")
    parser.add_argument("--probe-db", action="store_true", help="Also run SELECT 1 against DATABASE_URL")
    parser.add_argument("--warn-optional", action="store_true", help="List optional variables that are unset")
    args = parser.parse_args()

    for line in provider_report():
        print(f"[env-check] {line}")
    if settings.FORCE_IN_MEMORY_STORE:
        print("[env-check] FORCE_IN_MEMORY_STORE set: sessions will not survive a restart")

    if args.probe_db:
        from brezcode.db import test_connection
        if not test_connection():
            print("[env-check] database unreachable; the API would fall back to the in-memory store")

    if args.warn_optional:
        for key in OPTIONAL:
            if not _is_set(key):
                print(f"[env-check] optional unset: {key}")

    missing = missing_groups(REQUIRED)
    if missing:
        print("[env-check] Missing required environment variables:")
        for item in missing:
            print(f"  - {item}")
        return 1
    print("[env-check] OK")
    return 0


if __name__ == "__main__":
    sys.exit(main())
