#!/usr/bin/env python3
"""
Run avatar-training simulations from the command line (no HTTP server).

Examples
  python run_training_script.py --list
  python run_training_script.py --scenario dr_sakura_initial_consultation --message "I'm worried about a lump"
  python run_training_script.py --scenario family_history_concern --turns 3 --complete
  python run_training_script.py --path health_coach --turns 2 --in-memory
"""
from __future__ import annotations

import argparse
import os
import sys
import time

from dotenv import load_dotenv

# Ensure project root is on sys.path
ROOT_DIR = os.path.dirname(os.path.abspath(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

load_dotenv(override=True)

from brezcode.errors import ScenarioNotFound  # noqa: E402
from brezcode.repository import InMemorySessionRepository, select_repository  # noqa: E402
from brezcode.scenarios import TRAINING_SCENARIOS, training_path  # noqa: E402
from brezcode.training import AvatarTrainingSessionService  # noqa: E402


def _print_turn(turn) -> None:
    print(f"  [customer] {turn.customer_message.content}")
    preview = turn.avatar_message.content[:300]
    print(f"  [avatar:{turn.generation.strategy} q={turn.generation.quality_score}] {preview}")


def _run_scenario(service: AvatarTrainingSessionService, args, scenario_id: str) -> None:
    session = service.create_session(args.user_id, args.avatar_id, scenario_id)
    print(f"[simulate] {session.session_id} → {session.scenario_name}")
    if args.message:
        _print_turn(service.post_message(session.session_id, args.message))
    for i in range(args.turns):
        print(f"[simulate] turn {i + 1}/{args.turns}")
        _print_turn(service.continue_conversation(session.session_id))
        if args.sleep and i < args.turns - 1:
            time.sleep(args.sleep)
    if args.complete:
        done = service.complete_session(session.session_id)
        print(f"[simulate] completed: {done.session_summary}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run avatar training simulations.")
    parser.add_argument("--list", action="store_true", help="List scenarios and exit")
    parser.add_argument("--scenario", default=None, help="Scenario id to run")
    parser.add_argument("--path", default=None, help="Run every scenario in an avatar type's training path")
    parser.add_argument("--user-id", type=int, default=1, help="Owning user id")
    parser.add_argument("--avatar-id", default="dr_sakura", help="Avatar id")
    parser.add_argument("--message", default=None, help="Opening customer message")
    parser.add_argument("--turns", type=int, default=1, help="Simulated patient follow-ups per scenario")
    parser.add_argument("--sleep", type=float, default=0.0, help="Seconds to sleep between turns")
    parser.add_argument("--complete", action="store_true", help="Complete each session at the end")
    parser.add_argument("--in-memory", action="store_true", help="Skip the database")
    args = parser.parse_args()

    if args.list:
        for s in TRAINING_SCENARIOS:
            print(f"{s.id:35} {s.difficulty:13} {s.name}")
        return

    repo = InMemorySessionRepository() if args.in_memory else select_repository()
    service = AvatarTrainingSessionService(repo)

    if args.path:
        scenarios = [s.id for s in training_path(args.path)]
        if not scenarios:
            print(f"[error] no training path for {args.path}")
            sys.exit(1)
    elif args.scenario:
        scenarios = [args.scenario]
    else:
        parser.error("one of --list, --scenario or --path is required")
        return

    for scenario_id in scenarios:
        try:
            _run_scenario(service, args, scenario_id)
        except ScenarioNotFound as e:
            print(f"[error] {e}")
            sys.exit(1)

    print(f"[simulate] stats: {service.get_stats()}")


if __name__ == "__main__":
    main()
