# Swagger (OpenAPI 2.0) documentation of the exposed routes
#
# Every route gets a default description, models can extend or override it
# with an `api_schemas` dict, eg.
#
#   api_schemas = {"routeGet": {"summary": "Get a book"}, "routeList": {"querystring": {...}}}
#
# The model docstring is parsed as yaml and added to the tag of the model collection.
#
import copy
import inspect
import yaml
import flask_sqla_api
from .util import dict_merge
from .fields import get_fields, COLUMN

DOC_DELIMITER = "---"  # used as delimiter between the yaml documentation and the rest of the docstring

ERROR_DEFINITIONS = {
    "ApiErrorResponse": {
        "type": "object",
        "properties": {
            "statusCode": {"type": "integer"},
            "error": {"type": "string"},
            "message": {"type": "string"},
        },
    }
}

ERROR_REF = {"description": "Error", "schema": {"$ref": "#/definitions/ApiErrorResponse"}}

POPULATE_DESCRIPTION = "References to populate (csv)"


def query_param(name, param_type, description):
    return {"name": name, "in": "query", "type": param_type, "required": False, "description": description}


def default_route_schemas(model_name):
    """
    :param model_name: name of the model class
    :return: dict of route verb => swagger operation object
    """
    id_param = {"name": "id", "in": "path", "type": "string", "required": True, "description": f"Unique identifier of {model_name}"}
    populate = query_param("populate", "string", POPULATE_DESCRIPTION)
    not_found_responses = {"200": {"description": "Success"}, "404": ERROR_REF, "500": ERROR_REF}
    return {
        "routeList": {
            "summary": f"List {model_name}",
            "parameters": [
                query_param("offset", "integer", "Number of items to skip"),
                query_param("limit", "integer", "Max number of items"),
                query_param("sort", "string", "Sort fields (csv), prefix with - for descending order"),
                query_param("filter", "string", "Simple filtering by field value: field=value"),
                query_param("where", "string", "Json query object"),
                query_param("match", "string", "Pattern matching: field=regex"),
                query_param("search", "string", "Text search"),
                query_param("fields", "string", "Fields to include (csv), prefix with - to exclude"),
                populate,
            ],
            "responses": {"200": {"description": "Success"}, "500": ERROR_REF},
        },
        "routePost": {
            "summary": f"Create new {model_name}",
            "parameters": [
                populate,
                {"name": "X-HTTP-Method", "in": "header", "type": "string", "required": False, "description": "Create mode: cou or cor"},
                {"name": "body", "in": "body", "required": True, "schema": {"type": "object"}},
            ],
            "responses": {"200": {"description": "Success"}, "400": ERROR_REF, "500": ERROR_REF},
        },
        "routeGet": {
            "summary": f"Get details of single {model_name}",
            "parameters": [id_param, populate],
            "responses": not_found_responses,
        },
        "routePut": {
            "summary": f"Replace existing {model_name}",
            "parameters": [id_param, populate, {"name": "body", "in": "body", "required": True, "schema": {"type": "object"}}],
            "responses": not_found_responses,
        },
        "routePatch": {
            "summary": f"Update existing {model_name}",
            "parameters": [id_param, populate, {"name": "body", "in": "body", "required": True, "schema": {"type": "object"}}],
            "responses": not_found_responses,
        },
        "routeDelete": {
            "summary": f"Delete existing {model_name}",
            "parameters": [id_param],
            "responses": not_found_responses,
        },
        "routeSub": {
            "summary": f"Related data of {model_name}",
            "parameters": [id_param],
            "responses": not_found_responses,
        },
    }


def route_schema(model, verb):
    """
    :param model: sqla model
    :param verb: routeList, routeGet, ...
    :return: default swagger operation merged with the model's api_schemas
    """
    schema = copy.deepcopy(default_route_schemas(model.__name__)[verb])
    custom = getattr(model, "api_schemas", {}).get(verb)
    if custom:
        dict_merge(schema, custom)
    return schema


def model_definition(model):
    """
    :return: swagger definition of the model properties
    """
    swagger_types = {int: "integer", float: "number", bool: "boolean", str: "string", dict: "object", list: "array"}
    properties = {}
    for field in get_fields(model).top_level():
        if field.kind == COLUMN:
            properties[field.name] = {"type": swagger_types.get(field.python_type, "string")}
        else:
            properties[field.name] = {"type": "string" if field.kind == "reference" else "array"}
    return {"type": "object", "properties": properties}


def parse_object_doc(object):
    """
    Parse the yaml description from the documented models
    """
    api_doc = {}
    # only the docstring of the model itself, not the one inherited from the declarative base
    obj_doc = inspect.cleandoc(object.__dict__.get("__doc__") or "")
    if not obj_doc:
        return api_doc
    raw_doc = obj_doc.split(DOC_DELIMITER)[0]
    yaml_doc = None

    try:
        yaml_doc = yaml.safe_load(raw_doc)
    except yaml.YAMLError as exc:
        flask_sqla_api.log.error(f"Failed to parse documentation {raw_doc} ({exc})")
        yaml_doc = {"description": raw_doc}

    if isinstance(yaml_doc, dict):
        api_doc.update(yaml_doc)
    elif isinstance(yaml_doc, str):
        api_doc["description"] = yaml_doc

    return api_doc


def swagger_path(path):
    """
    convert a flask url rule to a swagger path: /api/books/<object_id> => /api/books/{id}
    """
    return path.replace("<object_id>", "{id}")


class SwaggerDoc:
    """
    The swagger.json contents, the routers add their operations
    """

    def __init__(self, title="flask-sqla-api", description="", version="1.0", base_path="/"):
        self.swagger = {
            "swagger": "2.0",
            "info": {"title": title, "description": description, "version": version},
            "basePath": base_path,
            "consumes": ["application/json"],
            "produces": ["application/json"],
            "paths": {},
            "definitions": copy.deepcopy(ERROR_DEFINITIONS),
            "tags": [],
        }
        self._operation_ids = {}

    def add_tag(self, model, name):
        try:
            object_doc = parse_object_doc(model)
        except Exception as exc:
            flask_sqla_api.log.error(f"Failed to parse docstring {exc}")
            object_doc = {}
        object_doc["name"] = name
        self.swagger["tags"].append(object_doc)
        self.swagger["definitions"][model.__name__] = model_definition(model)

    def add_operation(self, path, http_method, operation, tag):
        operation = dict(operation)
        operation["tags"] = [tag]
        operation["operationId"] = self._get_operation_id(operation.get("summary", ""))
        self.swagger["paths"].setdefault(swagger_path(path), {})[http_method] = operation

    def _get_operation_id(self, summary):
        summary = "".join(c for c in summary if c.isalnum())
        if summary not in self._operation_ids:
            self._operation_ids[summary] = 0
        else:
            self._operation_ids[summary] += 1
        return f"{summary}_{self._operation_ids[summary]}"

    def to_dict(self):
        return self.swagger
