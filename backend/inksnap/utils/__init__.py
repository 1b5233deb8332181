from .errors import error_response, denied_response
from .json import dumps, dumps_bytes, loads
