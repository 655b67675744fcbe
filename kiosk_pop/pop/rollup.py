import logging

from sqlalchemy.orm import Session

from kiosk_pop.db.repositories.plays import PlaysRepository

logger = logging.getLogger(__name__)


def refresh_plays_daily(session: Session) -> bool:
    """Rebuild the daily rollup; failures are logged and reported as False."""
    try:
        PlaysRepository(session).rebuild_daily_rollup()
    except Exception:  # noqa: BLE001
        logger.exception("plays_daily refresh failed")
        session.rollback()
        return False
    logger.info("plays_daily refreshed")
    return True
