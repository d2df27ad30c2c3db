# room_timetable/materialize_job.py
# Scheduled entry point: run from cron as `python -m room_timetable.materialize_job`
import logging

from room_timetable.config import settings
from room_timetable.database import SessionLocal
from room_timetable.materialization import run_materialization
from room_timetable.notifications import notify


def main() -> int:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    db = SessionLocal()
    try:
        report = run_materialization(db, notifier=notify)
    finally:
        db.close()

    print(f"Materialization completed. Created {report.generated_count}, skipped {report.skipped_count}.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
