import logging
import sys

def setup_logging():
    """
    Configure logging for the onboarding service.

    Sends everything to stdout with timestamps, levels and logger names so the
    container runtime can collect it.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    # Reduce SQLAlchemy noise in logs
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return logging.getLogger("hotel_onboarding")


# Create global logger instance
logger = setup_logging()
