import enum


class BookingStatus(str, enum.Enum):
    """Booking lifecycle. ``pending`` is the only non-terminal state."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED_BY_ARTIST = "declined_by_artist"
    CANCELLED_BY_CLIENT = "cancelled_by_client"


class BookingAction(str, enum.Enum):
    CONFIRM = "confirm"
    DECLINE = "decline"
    CANCEL = "cancel"


# action -> (resulting status, column holding the identity allowed to act)
BOOKING_TRANSITIONS = {
    BookingAction.CONFIRM: (BookingStatus.CONFIRMED, "artist_id"),
    BookingAction.DECLINE: (BookingStatus.DECLINED_BY_ARTIST, "artist_id"),
    BookingAction.CANCEL: (BookingStatus.CANCELLED_BY_CLIENT, "client_id"),
}
