# response encoding for the types that are stored in the database columns

import datetime
import decimal
import json
from flask.json.provider import DefaultJSONProvider
from uuid import UUID
import flask_sqla_api
from .config import is_debug


class _APIJSONEncoder:
    """
    JSON encoding for common column types
    """

    # pylint: disable=too-many-return-statements,arguments-differ,method-hidden
    def default(self, obj, **kwargs):
        """
        override the default json encoding
        :param obj: object to be encoded
        :return: encoded/serialized object
        """
        if obj is None:
            return None
        if isinstance(obj, datetime.timedelta):
            return str(obj)
        if isinstance(obj, (datetime.datetime, datetime.date, datetime.time)):
            return obj.isoformat()
        if isinstance(obj, set):
            return list(obj)
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, decimal.Decimal):
            return float(obj)
        if isinstance(obj, bytes):
            if obj == b"":
                return ""
            flask_sqla_api.log.debug("APIJSONEncoder: serializing bytes obj")
            return obj.hex()

        flask_sqla_api.log.warning(f'JSON Encoding Error: Unknown object type "{type(obj)}" for {obj}')
        if is_debug():
            return str(obj)
        return {"error": "APIJSONEncoder invalid object"}


class APIJSONProvider(_APIJSONEncoder, DefaultJSONProvider):
    """
    Flask JSON encoding
    """

    pass


class APIJSONEncoder(_APIJSONEncoder, json.JSONEncoder):
    """
    Common JSON encoding, used by the flask-restful representations
    """

    pass
