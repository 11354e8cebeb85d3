# mechconnect/models/__init__.py
from .auth import Token, TokenData, CustomerCreate, MechanicCreate
from .common import Address, GeoPoint, ServiceCategory
from .customer import Customer
from .mechanic import (
    KycDecision,
    KycStatus,
    Mechanic,
    MechanicOut,
    MechanicStatusUpdate,
    NearbyMechanic
)
from .service_request import (
    RequestStatus,
    ServiceRequest,
    ServiceRequestCreate,
    ServiceRequestCreated,
    Urgency
)
from .proposal import Proposal, ProposalCreate, ProposalStatus
from .booking import (
    Booking,
    BookingCancel,
    BookingReschedule,
    BookingStatus,
    LocationUpdateOut,
    RouteInfo
)
from .wallet import (
    DiamondPackage,
    DiamondPurchase,
    PaymentMethod,
    PurchaseConfirmation,
    RefundCreate,
    Transaction,
    TransactionStatus,
    TransactionType,
    WalletOut
)
from .review import ReviewCreate, Review, MechanicReviews
from .notification import Notification, NotificationType
from .chat import Chat, Message, MessageCreate

__all__ = [
    'Token', 'TokenData', 'CustomerCreate', 'MechanicCreate',
    'Address', 'GeoPoint', 'ServiceCategory',
    'Customer',
    'KycDecision', 'KycStatus', 'Mechanic', 'MechanicOut', 'MechanicStatusUpdate', 'NearbyMechanic',
    'RequestStatus', 'ServiceRequest', 'ServiceRequestCreate', 'ServiceRequestCreated', 'Urgency',
    'Proposal', 'ProposalCreate', 'ProposalStatus',
    'Booking', 'BookingCancel', 'BookingReschedule', 'BookingStatus', 'LocationUpdateOut', 'RouteInfo',
    'DiamondPackage', 'DiamondPurchase', 'PaymentMethod', 'PurchaseConfirmation', 'RefundCreate',
    'Transaction', 'TransactionStatus', 'TransactionType', 'WalletOut',
    'ReviewCreate', 'Review', 'MechanicReviews',
    'Notification', 'NotificationType',
    'Chat', 'Message', 'MessageCreate'
]
