from . import crud_rest
from . import crud_conversation
from . import crud_profile
from . import crud_booking
from . import crud_message
from . import crud_review
from . import crud_follow
from . import crud_convention_date
from . import crud_rpc
from .errors import GatewayDenied, InvalidRequest, PolicyError, NotFoundError, ConflictError
from .policies import TABLES, get_policy
