from datetime import datetime
from typing import Literal, Optional, Protocol
import redis
from rq import Queue
from pydantic import BaseModel
from app.core.config import Settings
from app.core.logging_config import logger


class OnboardingCompletedEvent(BaseModel):
    """Emitted once per session on the ACTIVE -> COMPLETED transition."""
    event_type: Literal["onboarding_completed"] = "onboarding_completed"
    session_id: str
    hotel_id: str
    owner_id: str
    quality_score: float
    completed_at: datetime


class CompletionPublisher(Protocol):
    def publish(self, event: OnboardingCompletedEvent) -> None:
        ...


class NullCompletionPublisher:
    """Used when no queue is configured. Events are only logged."""

    def publish(self, event: OnboardingCompletedEvent) -> None:
        logger.info(
            f"Onboarding completed for hotel {event.hotel_id} "
            f"(session {event.session_id}, score {event.quality_score:g}); no event queue configured"
        )


class QueueCompletionPublisher:
    """
    Publishes completion events to a Redis Queue (RQ) for downstream
    system integration.
    """

    def __init__(self, redis_url: str, queue_name: str):
        self.queue_name = queue_name
        self.redis_conn = redis.from_url(redis_url)
        self.queue = Queue(queue_name, connection=self.redis_conn)
        logger.info(f"Completion publisher initialized with queue '{queue_name}'")

    def publish(self, event: OnboardingCompletedEvent) -> None:
        """
        Enqueue the event.

        A failure to enqueue is logged and swallowed: the completion itself
        has already been committed.
        """
        try:
            job = self.queue.enqueue(
                handle_onboarding_completed,
                event.model_dump(mode="json"),
                job_timeout="1m",
            )
        except redis.RedisError as e:
            logger.error(f"Failed to enqueue completion event for session {event.session_id}: {e}")
            return
        logger.info(f"Completion event for session {event.session_id} queued, job_id={job.id}")


def build_publisher(settings: Settings) -> CompletionPublisher:
    if not settings.REDIS_URL:
        return NullCompletionPublisher()
    try:
        return QueueCompletionPublisher(settings.REDIS_URL, settings.COMPLETION_QUEUE_NAME)
    except (redis.RedisError, ValueError) as e:
        logger.error(f"Failed to connect to Redis, completion events will only be logged: {e}")
        return NullCompletionPublisher()


def handle_onboarding_completed(payload: dict) -> Optional[dict]:
    """
    RQ worker entry point for completion events.

    Runs in the worker process. Validates the payload and hands the hotel over
    to downstream systems; today that is a structured log line.
    """
    event = OnboardingCompletedEvent.model_validate(payload)
    logger.info(
        f"[Worker] Onboarding completed: hotel={event.hotel_id} session={event.session_id} "
        f"score={event.quality_score:g} at {event.completed_at.isoformat()}"
    )
    return event.model_dump(mode="json")
