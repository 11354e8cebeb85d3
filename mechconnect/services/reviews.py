# mechconnect/services/reviews.py
import logging

from ..errors import Forbidden, InvalidState, NotFound
from ..models.booking import BookingStatus
from ..models.notification import NotificationType
from ..models.review import MechanicReviews, Review, ReviewCreate
from ..queries.booking_queries import get_booking, mark_booking_reviewed
from ..queries.customer_queries import get_customer
from ..queries.mechanic_queries import get_mechanic, increment_counters
from ..queries.review_queries import create_review, list_mechanic_reviews
from ..store import DocumentStore, DuplicateDocument
from .notifier import Notifier

logger = logging.getLogger(__name__)

async def submit_review(store: DocumentStore, notifier: Notifier, customer_id: str, payload: ReviewCreate) -> Review:
    """Review a completed booking once and fold the rating into the mechanic's aggregate"""
    async with store.transaction() as tx:
        booking = await get_booking(tx, payload.booking_id)
        if not booking:
            raise NotFound.resource("Booking")
        if booking.customer_id != customer_id:
            raise Forbidden("Not authorized to review this booking")
        if booking.status != BookingStatus.COMPLETED:
            raise InvalidState("Only completed bookings can be reviewed")

        if await mark_booking_reviewed(tx, booking.id, payload.rating, payload.comment) is None:
            raise InvalidState("Booking has already been reviewed")

        customer = await get_customer(tx, customer_id)
        try:
            review = await create_review(
                tx,
                booking_id=booking.id,
                mechanic_id=booking.mechanic_id,
                customer_id=customer_id,
                customer_name=customer.name if customer else (booking.customer_name or ""),
                rating=payload.rating,
                comment=payload.comment
            )
        except DuplicateDocument:
            raise InvalidState("Booking has already been reviewed")
        await increment_counters(tx, booking.mechanic_id, total_rating=payload.rating, rating_count=1)

    logger.info(f"Booking {booking.id} reviewed with {payload.rating} stars")
    await notifier.send(
        booking.mechanic_id,
        NotificationType.NEW_REVIEW,
        "New review",
        f"You received a {payload.rating}-star review",
        {"booking_id": booking.id, "review_id": review.id}
    )
    return review

async def get_mechanic_reviews(
    store: DocumentStore,
    mechanic_id: str,
    page: int = 1,
    per_page: int = 20
) -> MechanicReviews:
    mechanic = await get_mechanic(store, mechanic_id)
    if not mechanic:
        raise NotFound.resource("Mechanic")
    reviews = await list_mechanic_reviews(store, mechanic_id)
    start = (page - 1) * per_page
    return MechanicReviews(
        average_rating=mechanic.average_rating,
        total_reviews=mechanic.rating_count,
        reviews=reviews[start:start + per_page]
    )
