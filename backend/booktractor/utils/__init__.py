from .json import dumps
from .errors import error_response, rpc_error_response, validation_field_errors
