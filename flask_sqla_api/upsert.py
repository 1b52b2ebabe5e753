#
# Instance creation and modification
#
# The create mode is selected by the X-HTTP-Method request header:
# - (absent) create: insert a new row, a duplicate id is a database error
# - "cou"    create or update: the non-null payload keys are set, the null keys are unset,
#            the other fields keep their value. Inserts when the id doesn't exist.
# - "cor"    create or replace: the row is replaced by the payload, missing fields
#            get their default value or are removed. Inserts when the id doesn't exist.
#
# Payload keys may be dotted paths into JSON columns, eg. {"biography.born": "1960"},
# the intermediate documents are created when needed.
#
import copy
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.attributes import flag_modified
import flask_sqla_api
from .errors import GenericError, NotFoundError, ValidationError
from .fields import get_fields, parse_value, COLUMN, NESTED, REFERENCE, REFERENCE_COLLECTION

CREATE = "create"
CREATE_OR_UPDATE = "cou"
CREATE_OR_REPLACE = "cor"
CREATE_MODES = (CREATE_OR_UPDATE, CREATE_OR_REPLACE)


def parse_create_mode(value):
    """
    :param value: X-HTTP-Method header value
    :return: CREATE, CREATE_OR_UPDATE or CREATE_OR_REPLACE
    """
    if not value:
        return CREATE
    mode = value.strip().lower()
    if mode not in CREATE_MODES:
        raise ValidationError(f"Invalid create mode: {value}")
    return mode


def get_instance(model, object_id):
    """
    :param model: sqla model
    :param object_id: primary key value (string from the url)
    :return: the instance
    :raises NotFoundError: when the id is invalid or doesn't exist
    """
    fields = get_fields(model)
    try:
        pk = fields.pk_field.coerce(object_id)
    except ValidationError:
        raise NotFoundError(f"Invalid {model.__name__} id {object_id}")
    instance = flask_sqla_api.DB.session.get(model, pk)
    if instance is None:
        raise NotFoundError(f"{model.__name__} {object_id} not found")
    return instance


def _coerce_document(model, path, value):
    """
    cast the declared nested paths of a json document
    """
    if not isinstance(value, dict):
        return value
    fields = get_fields(model)
    result = {}
    for key, sub_value in value.items():
        sub_path = f"{path}.{key}"
        field = fields.get(sub_path)
        if field is None:
            result[key] = sub_value
        elif field.python_type is dict:
            result[key] = _coerce_document(model, sub_path, sub_value)
        else:
            result[key] = field.coerce(sub_value)
    return result


def _resolve_reference(field, value):
    target = field.target
    target_pk = get_fields(target).pk_field
    instance = flask_sqla_api.DB.session.get(target, parse_value(target_pk.python_type, value, field.name))
    if instance is None:
        raise ValidationError(f"{target.__name__} {value} referenced by {field.name} does not exist")
    return instance


def coerce_payload(model, data):
    """
    Cast the payload values to the types of the model fields

    :param model: sqla model
    :param data: request payload (dict), the values are not None
    :return: dict of field path => value, unknown paths are skipped
    """
    fields = get_fields(model)
    result = {}
    for path, value in data.items():
        field = fields.get(path)
        if field is None:
            flask_sqla_api.log.debug(f"Skipping unknown {model.__name__} path {path}")
            continue
        if path == fields.version_key:
            # the version column is maintained by sqlalchemy
            continue
        if field.kind == REFERENCE:
            result[path] = _resolve_reference(field, value)
        elif field.kind == REFERENCE_COLLECTION:
            if not isinstance(value, list):
                raise ValidationError(f"{path} should be an array")
            result[path] = [_resolve_reference(field, item) for item in value]
        elif field.kind == NESTED and field.python_type is not dict:
            result[path] = field.coerce(value)
        elif field.python_type is dict:
            result[path] = _coerce_document(model, path, value)
        else:
            result[path] = field.coerce(value)
    return result


def assign_path(instance, path, value):
    """
    set the (dotted) path of the instance to value
    """
    if "." not in path:
        setattr(instance, get_fields(type(instance))[path].attr_key, value)
        return
    root, *subpath = path.split(".")
    document = copy.deepcopy(getattr(instance, root) or {})
    current = document
    for key in subpath[:-1]:
        if not isinstance(current.get(key), dict):
            current[key] = {}
        current = current[key]
    current[subpath[-1]] = value
    setattr(instance, root, document)
    flag_modified(instance, root)


def unset_path(instance, path):
    """
    remove the value of the (dotted) path: NULL for columns, key removal for nested paths
    """
    fields = get_fields(type(instance))
    field = fields.get(path)
    if field is None or path in (fields.primary_key, fields.version_key):
        return
    if "." not in path:
        setattr(instance, field.attr_key, [] if field.kind == REFERENCE_COLLECTION else None)
        return
    root, *subpath = path.split(".")
    document = copy.deepcopy(getattr(instance, root))
    current = document
    for key in subpath[:-1]:
        current = current.get(key) if isinstance(current, dict) else None
    if not isinstance(current, dict) or subpath[-1] not in current:
        return
    del current[subpath[-1]]
    setattr(instance, root, document)
    flag_modified(instance, root)


def split_nulls(data):
    """
    :return: (dict of the non null payload values, list of the null keys)
    """
    if not isinstance(data, dict):
        raise ValidationError(f"Invalid JSON Payload : {data}")
    values = {key: value for key, value in data.items() if value is not None}
    null_keys = [key for key, value in data.items() if value is None]
    return values, null_keys


def flush(instance):
    """
    flush the session so the generated values (ids, defaults, versions) are available
    """
    try:
        flask_sqla_api.DB.session.flush()
    except IntegrityError as exc:
        raise GenericError(str(exc.orig))
    except SQLAlchemyError as exc:
        raise GenericError(str(exc))
    return instance


def create(model, data):
    """
    insert a new instance, the null values are ignored
    """
    values, _ = split_nulls(data)
    instance = model()
    for path, value in coerce_payload(model, values).items():
        assign_path(instance, path, value)
    flask_sqla_api.DB.session.add(instance)
    return flush(instance)


def _existing(model, data):
    """
    :return: the instance with the id of the payload or None
    """
    pk_field = get_fields(model).pk_field
    object_id = data.get(pk_field.name) if isinstance(data, dict) else None
    if object_id is None:
        return None
    return flask_sqla_api.DB.session.get(model, pk_field.coerce(object_id))


def update(instance, data):
    """
    set the non-null payload values and unset the null ones, the other fields are untouched
    """
    model = type(instance)
    fields = get_fields(model)
    values, null_keys = split_nulls(data)
    values.pop(fields.primary_key, None)
    for path, value in coerce_payload(model, values).items():
        assign_path(instance, path, value)
    for path in null_keys:
        unset_path(instance, path)
    return flush(instance)


def create_or_update(model, data):
    """
    update the instance with the payload id, or create it
    """
    values, _ = split_nulls(data)
    # cast the payload before touching the database
    coerce_payload(model, values)
    instance = _existing(model, data)
    if instance is None:
        return create(model, data)
    return update(instance, data)


def default_value(column):
    """
    :return: the (python side) default value of the column or None
    """
    default = column.default
    if default is None:
        return None
    if default.is_callable:
        return default.arg(None)
    if default.is_scalar:
        return default.arg
    return None


def create_or_replace(model, data):
    """
    replace the instance with the payload id, or create it
    """
    values, _ = split_nulls(data)
    instance = _existing(model, data)
    if instance is None:
        return create(model, data)

    fields = get_fields(model)
    coerced = coerce_payload(model, values)
    for field in fields.top_level():
        if field.name in (fields.primary_key, fields.version_key):
            continue
        if field.name in coerced:
            value = coerced[field.name]
        elif field.kind == COLUMN:
            value = default_value(field.column)
        elif field.kind == REFERENCE_COLLECTION:
            value = []
        else:
            value = None
        setattr(instance, field.attr_key, value)
    # the nested paths are assigned after their root document
    for path, value in coerced.items():
        if "." in path:
            assign_path(instance, path, value)
    return flush(instance)


def upsert(model, data, mode=CREATE):
    """
    :param model: sqla model
    :param data: payload
    :param mode: create mode, cfr. parse_create_mode
    :return: the created or modified instance
    """
    if mode == CREATE_OR_UPDATE:
        return create_or_update(model, data)
    if mode == CREATE_OR_REPLACE:
        return create_or_replace(model, data)
    return create(model, data)
