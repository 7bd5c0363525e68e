import datetime
import logging

logger = logging.getLogger(__name__)

COMMENTS_MAX_LENGTH = 500


def utcnow() -> datetime.datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


def normalize_email(email: str) -> str:
    return email.strip().lower()


def append_comment(existing, new):
    """Comments accumulate across loan transitions, one line per transition."""
    if not new:
        return existing
    combined = f"{existing}\n{new}" if existing else new
    if len(combined) > COMMENTS_MAX_LENGTH:
        logger.info("Loan comments truncated to %d characters", COMMENTS_MAX_LENGTH)
        combined = combined[:COMMENTS_MAX_LENGTH]
    return combined


def as_utc(value):
    """Converts an aware datetime to naive UTC; naive values are assumed UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
