# mechconnect/queries/__init__.py
from .customer_queries import (
    create_customer,
    get_customer,
    get_customer_credentials
)
from .mechanic_queries import (
    create_mechanic,
    get_mechanic,
    get_mechanic_credentials,
    find_eligible_mechanics,
    update_mechanic,
    adjust_diamond_balance,
    increment_counters
)
from .request_queries import (
    create_request,
    get_request,
    list_pending_requests,
    list_customer_requests,
    update_request_status,
    list_stale_requests
)
from .proposal_queries import (
    create_proposal,
    get_proposal,
    list_proposals_for_request,
    list_answered_request_ids,
    update_proposal_status
)
from .booking_queries import (
    create_booking,
    get_booking,
    update_booking,
    get_active_booking,
    list_bookings,
    mark_booking_reviewed
)
from .wallet_queries import (
    create_transaction,
    get_transaction,
    update_transaction,
    list_transactions
)
from .review_queries import (
    create_review,
    list_mechanic_reviews
)
from .notification_queries import (
    create_notification,
    list_notifications,
    mark_notification_read,
    mark_all_read,
    count_unread
)
from .chat_queries import (
    create_chat,
    get_chat,
    get_chat_for_booking,
    list_user_chats,
    create_message,
    set_last_message,
    list_messages,
    mark_messages_read
)

__all__ = [
    # Customer queries
    'create_customer',
    'get_customer',
    'get_customer_credentials',

    # Mechanic queries
    'create_mechanic',
    'get_mechanic',
    'get_mechanic_credentials',
    'find_eligible_mechanics',
    'update_mechanic',
    'adjust_diamond_balance',
    'increment_counters',

    # Request queries
    'create_request',
    'get_request',
    'list_pending_requests',
    'list_customer_requests',
    'update_request_status',
    'list_stale_requests',

    # Proposal queries
    'create_proposal',
    'get_proposal',
    'list_proposals_for_request',
    'list_answered_request_ids',
    'update_proposal_status',

    # Booking queries
    'create_booking',
    'get_booking',
    'update_booking',
    'get_active_booking',
    'list_bookings',
    'mark_booking_reviewed',

    # Wallet queries
    'create_transaction',
    'get_transaction',
    'update_transaction',
    'list_transactions',

    # Review queries
    'create_review',
    'list_mechanic_reviews',

    # Notification queries
    'create_notification',
    'list_notifications',
    'mark_notification_read',
    'mark_all_read',
    'count_unread',

    # Chat queries
    'create_chat',
    'get_chat',
    'get_chat_for_booking',
    'list_user_chats',
    'create_message',
    'set_last_message',
    'list_messages',
    'mark_messages_read'
]
