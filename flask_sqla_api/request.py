"""
Request class: parse the list arguments, the create mode header and the json payload
"""

from flask import Request
from .errors import ValidationError
from .upsert import parse_create_mode

LIST_ARGS = ("offset", "limit", "sort", "filter", "where", "match", "search", "fields")


# pylint: disable=too-many-ancestors
class APIRequest(Request):
    """
    Parse the request arguments:
    - query args: offset, limit, sort, filter, where, match, search, fields, populate (or populate[])
    - header: the create mode (X-HTTP-Method)
    - body: json object
    """

    @property
    def list_params(self):
        """
        :return: dict of the recognized list parameters, the other query args are ignored
        """
        params = {arg: self.args.get(arg) for arg in LIST_ARGS if self.args.get(arg) not in (None, "")}
        populate = self.args.getlist("populate[]") + self.args.getlist("populate")
        if populate:
            params["populate"] = populate
        return params

    @property
    def populate(self):
        return self.list_params.get("populate", [])

    def get_create_mode(self, header="X-HTTP-Method"):
        """
        :param header: name of the header that holds the create mode
        :return: create mode, cfr. upsert.parse_create_mode
        """
        return parse_create_mode(self.headers.get(header))

    def get_payload(self):
        """
        :return: json request payload
        """
        result = self.get_json(silent=True)
        if not isinstance(result, dict):
            raise ValidationError(f"Invalid JSON Payload : {result}")
        return result
