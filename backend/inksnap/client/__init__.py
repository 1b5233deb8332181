from .errors import AuthorizationError, GatewayError, InkSnapError, UploadError, ValidationError
from .gateway import Gateway, RealtimeSubscription
from .http_gateway import HttpGateway
from .local_gateway import LocalGateway
from .notifications import Notification, Notifier
from .profile import Profile, normalize_profile
from .session import SessionContext, UnreadCounter
from .directory import ConversationDirectory
from .channel import Attachment, MessageChannel
from .chat import ChatView
from .bookings import ArtistBookingQueue, BookingSummary, BookingTracker, ClientBookingList
from .reviews import ReviewComposer
from .follows import FollowTracker
from .artist_profile import ArtistProfileLoader
from .search import ArtistSearch, search_artists
