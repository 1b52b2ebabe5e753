# Exception Handlers
#
# The exceptions will be caught in http_method_decorator and formatted, for example:
# {
#      "statusCode": 401,
#      "error": "Unauthorized",
#      "message": "Missing token"
# }
#
# Messages are sent to the client as they were raised,
# in debug mode the traceback is logged as well
#
import traceback
from http import HTTPStatus
from werkzeug.exceptions import NotFound
from sqlalchemy.exc import DontWrapMixin
import flask_sqla_api
from .config import is_debug


def error_body(status_code, message=""):
    """
    :param status_code: HTTP status code
    :param message: error message
    :return: the json error body
    """
    try:
        phrase = HTTPStatus(status_code).phrase
    except ValueError:
        phrase = "Error"
    return {"statusCode": status_code, "error": phrase, "message": message}


class APIError(Exception, DontWrapMixin):
    """
    Base class for the errors that are translated to an http response
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value
    message = ""

    def __init__(self, message="", status_code=None):
        Exception.__init__(self, message)
        if status_code is not None:
            self.status_code = status_code
        self.message = str(message)

    def to_dict(self):
        return error_body(self.status_code, self.message)


class NotFoundError(APIError, NotFound):
    """
    This exception is raised when an item was not found
    """

    status_code = HTTPStatus.NOT_FOUND.value

    def __init__(self, message="Not Found", status_code=HTTPStatus.NOT_FOUND.value):
        """
        :param message: Message to be returned in the (json) body
        :param status_code: HTTP Status code
        """
        NotFound.__init__(self, description=message)
        APIError.__init__(self, message, status_code)
        flask_sqla_api.log.info("Not found: %s", message)


class UnAuthorizedError(APIError):
    """
    This exception is raised when an authorization error occured
    we use FORBIDDEN(403) by default, auth hooks may use UNAUTHORIZED(401)
    """

    status_code = HTTPStatus.FORBIDDEN.value

    def __init__(self, message="", status_code=HTTPStatus.FORBIDDEN.value):
        APIError.__init__(self, message, status_code)
        flask_sqla_api.log.error("UnAuthorizedError: %s", message)


class GenericError(APIError):
    """
    This exception is raised when an error has been detected
    """

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR.value  # 500

    def __init__(self, message, status_code=HTTPStatus.INTERNAL_SERVER_ERROR.value):
        APIError.__init__(self, message, status_code)
        flask_sqla_api.log.error("Generic Error: %s", message)
        if is_debug():
            flask_sqla_api.log.debug(traceback.format_exc(120))


class ValidationError(APIError):
    """
    This exception is raised when invalid input has been detected (client side input)
    """

    status_code = HTTPStatus.BAD_REQUEST.value

    def __init__(self, message="", status_code=HTTPStatus.BAD_REQUEST.value):
        APIError.__init__(self, message, status_code)
        flask_sqla_api.log.warning("ValidationError: %s", message)


class ConfigurationError(APIError):
    """
    Raised while exposing the models, when the models can't be served as configured
    """

    def __init__(self, message):
        APIError.__init__(self, message)
        flask_sqla_api.log.critical("Configuration Error: %s", message)
