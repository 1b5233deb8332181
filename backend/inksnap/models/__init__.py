from .profile import Profile
from .conversation import Conversation
from .message import Message
from .booking_status import BookingStatus, BookingAction, BOOKING_TRANSITIONS
from .booking import Booking
from .review import Review
from .follow import Follow
from .convention_date import ConventionDate

__all__ = [
    "Profile",
    "Conversation",
    "Message",
    "Booking",
    "BookingStatus",
    "BookingAction",
    "BOOKING_TRANSITIONS",
    "Review",
    "Follow",
    "ConventionDate",
]
