from __future__ import annotations

import argparse
import json
import logging
import sys
import uuid
from pathlib import Path

script_path = Path(__file__).resolve()
backend_root = script_path.parents[1]
sys.path.append(str(backend_root))

from app.core.config import settings
from app.pipelines.sweep import run_progress_sweep


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the progress pipeline for eligible students.")
    parser.add_argument("--user", type=uuid.UUID, default=None, help="Only this user id")
    parser.add_argument("--course", default=None, help="Only this course id")
    parser.add_argument(
        "--with-plan",
        action="store_true",
        default=None,
        help="Also build study plans and narratives",
    )
    parser.add_argument(
        "--delay",
        type=float,
        default=None,
        help="Seconds to wait between processed pairs",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=settings.LOG_LEVEL)

    result = run_progress_sweep(
        user_id=args.user,
        course_id=args.course,
        with_plan=args.with_plan,
        delay_seconds=args.delay,
    )
    print(json.dumps(result.model_dump(mode="json"), ensure_ascii=False, indent=2))
    return 0 if all(r.status == "success" for r in result.results) else 1


if __name__ == "__main__":
    sys.exit(main())
