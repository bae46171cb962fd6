import json
import logging
from app.database import Database
from app.models.event import Registration, RegistrationStatus
from app.models.registration import RegistrationSubmission
from app.services.events_service import registration_from_row
from app.core.exceptions import ServerRejectedError, APIError

logger = logging.getLogger(__name__)


class RegistrationsService:
    """Submits registrations, reserving tier stock through the sold-count RPCs"""

    def __init__(self, db: Database):
        self.db = db

    async def submit_registration(self, submission: RegistrationSubmission) -> Registration:
        """
        Reserve stock, then insert the registration.

        Stock is reserved with ``increment_sold_count`` in its own
        transaction; if the insert fails the reservation is given back with
        ``decrement_sold_count`` and the original error is re-raised.
        """
        user_id = submission.user_id

        async with self.db.connection(as_user=user_id) as conn:
            reserved = await conn.fetchval(
                "SELECT increment_sold_count($1, $2)",
                submission.ticket_tier_id, submission.quantity
            )

        if not reserved:
            raise ServerRejectedError(
                "Sorry, these tickets just sold out. Please select a different tier.",
                409,
                {"tier_id": submission.ticket_tier_id}
            )

        status = RegistrationStatus.CONFIRMED if submission.total_amount == 0 else RegistrationStatus.PENDING
        form_responses = {"attendees": [submission.attendee.model_dump()]}

        try:
            async with self.db.connection(as_user=user_id) as conn:
                row = await conn.fetchrow("""
                    INSERT INTO registrations (
                        event_id, user_id, status, ticket_tier_id, quantity,
                        promo_code_id, subtotal, discount_amount, total_amount,
                        form_responses
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10::jsonb)
                    RETURNING id, event_id, user_id, status, ticket_tier_id, quantity,
                              promo_code_id, subtotal, discount_amount, total_amount,
                              form_responses, created_at
                """,
                    submission.event_id, user_id, status.value,
                    submission.ticket_tier_id, submission.quantity,
                    submission.promo_code_id, submission.subtotal,
                    submission.discount_amount, submission.total_amount,
                    json.dumps(form_responses)
                )
        except APIError as e:
            logger.warning(f"Registration insert failed for event {submission.event_id}, releasing stock: {e.message}")
            await self._release_stock(submission)
            raise

        logger.info(f"Registration created for event {submission.event_id}: {status.value}")
        return registration_from_row(row)

    async def _release_stock(self, submission: RegistrationSubmission) -> None:
        try:
            async with self.db.connection(as_user=submission.user_id) as conn:
                await conn.execute(
                    "SELECT decrement_sold_count($1, $2)",
                    submission.ticket_tier_id, submission.quantity
                )
        except APIError as e:
            logger.error(f"Failed to release {submission.quantity} tickets of tier {submission.ticket_tier_id}: {e.message}")
