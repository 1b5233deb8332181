from .profile import ProfileCard, ProfileRead, ArtistSearchResult
from .conversation import ConversationRead, ConversationSummary
from .message import MessageRead
from .booking import BookingRead, ConventionDateRead
from .review import ReviewRead
from .functions import (
    UploadResult,
    DeleteUploadRequest,
    DeleteUploadResponse,
    GeocodeRequest,
    GeocodeResponse,
    DeleteAccountResponse,
)
from .rpc import StartConversationParams, SearchArtistsParams, UnreadTotal
