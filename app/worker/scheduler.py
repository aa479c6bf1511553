# app/worker/scheduler.py
from __future__ import annotations

import logging
import os

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError
from tzlocal import get_localzone

from app.core.config import settings
from app.db.session import SessionLocal
from app.services.invites import expire_overdue_invites

log = logging.getLogger("app.scheduler")


def run_invite_sweep() -> int:
    """
    One pass of the expiry sweeper with a fresh session. Lazy expiry on read
    stays authoritative; this only makes stored statuses catch up sooner.
    """
    db = SessionLocal()
    try:
        expired = expire_overdue_invites(db)
    except SQLAlchemyError:
        log.warning("invite sweep failed", exc_info=True)
        return 0
    finally:
        db.close()
    if expired:
        log.info("invite sweep expired=%s", expired)
    return expired


def make_scheduler() -> BackgroundScheduler:
    """
    BackgroundScheduler with the invite expiry sweeper:
      - APP_TIMEZONE          (default: system tz via tzlocal)
      - INVITE_SWEEP_MINUTES  (default: 15)
    """
    tzname = os.getenv("APP_TIMEZONE") or str(get_localzone())
    sched = BackgroundScheduler(timezone=tzname)
    sched.add_job(
        run_invite_sweep,
        IntervalTrigger(minutes=max(1, settings.invite_sweep_minutes)),
        id="invite_expiry_sweep",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
    )
    return sched
