import argparse
from typing import Optional

from pulse.db.session import configure_database, create_tables
from pulse.services.engine import run_insight_cycle, run_reminder_cycle


def run(job: str) -> dict[str, int]:
    if job == "insights":
        result = run_insight_cycle()
        return {
            "processed_clients": result.processed_clients,
            "created_triggers": result.created_triggers,
            "resolved_triggers": result.resolved_triggers,
            "escalated_triggers": result.escalated_triggers,
            "failed_clients": result.failed_clients,
        }
    result = run_reminder_cycle()
    return {
        "processed_clients": result.processed_clients,
        "sent_reminders": result.sent_reminders,
        "failed_clients": result.failed_clients,
    }


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Run one engagement cycle against the Coach Pulse SQLite DB."
    )
    parser.add_argument(
        "job",
        choices=["insights", "reminders", "all"],
        help="Which cycle to run.",
    )
    parser.add_argument(
        "--db-path",
        default=None,
        help="Override SQLite DB path. Defaults to DB_PATH env or app default.",
    )
    args = parser.parse_args(argv)

    if args.db_path:
        configure_database(args.db_path)
    create_tables()

    jobs = ["insights", "reminders"] if args.job == "all" else [args.job]
    failed = 0
    for job in jobs:
        counts = run(job)
        failed += counts["failed_clients"]
        print(f"{job}:")
        for key, value in counts.items():
            print(f"  {key}: {value}")
    return 1 if failed else 0


if __name__ == "__main__":
    raise SystemExit(main())
