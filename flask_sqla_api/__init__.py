# flake8: noqa: F401
#
# flask-sqla-api: expose sqlalchemy models as a CRUD + relationships http api
#
from .app_init import DB, log, FlaskSqlaAPI
from .errors import ValidationError, GenericError, UnAuthorizedError, NotFoundError, ConfigurationError
from .json_encoder import APIJSONProvider, APIJSONEncoder
from .request import APIRequest
from .query import ListQuery
from .serialize import SerializeContext, serialize
from .model_methods import DefaultModelMethods, ModelMethods
from .router import APIRouter
from .api import API
from .__about__ import __version__, __description__

__all__ = (
    "__version__",
    "__description__",
    #
    "API",
    "APIRouter",
    "FlaskSqlaAPI",
    # model operations:
    "DefaultModelMethods",
    "ModelMethods",
    "ListQuery",
    "SerializeContext",
    "serialize",
    # json:
    "APIJSONProvider",
    "APIJSONEncoder",
    # Errors:
    "ValidationError",
    "GenericError",
    "UnAuthorizedError",
    "NotFoundError",
    "ConfigurationError",
    # request
    "APIRequest",
)
