# sitemarket/scheduler.py
from apscheduler.schedulers.background import BackgroundScheduler
from .db import SessionLocal
from .payments import expire_stale_checkouts
from .utils import logger

def sweep_stale_checkouts():
    db = SessionLocal()
    try:
        return expire_stale_checkouts(db)
    finally:
        db.close()

scheduler = BackgroundScheduler()
scheduler.add_job(sweep_stale_checkouts, 'interval', hours=1, id="sweep_stale_checkouts")

def start_scheduler():
    if not scheduler.running:
        scheduler.start()
        logger.info("Scheduler started")

def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
