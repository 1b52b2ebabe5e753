#
# Static field descriptors of the exposed models
#
# The descriptors are computed once per model from the sqlalchemy mapper:
# - columns, foreign key columns are represented by the reference that uses them
# - nested paths of JSON columns, declared in the column info, eg.
#       biography = db.Column(db.JSON, info={"fields": {"description": str, "born": int}})
# - references: many-to-one relationships, the raw value is the foreign key
# - reference collections: many-to-many relationships, the raw value is the list of target ids
#
# one-to-many relationships are the reverse side of another model's reference,
# they are exposed as sub routes (cfr. relations.py), not as fields
#
import datetime
from collections import OrderedDict
from functools import lru_cache
import sqlalchemy
from sqlalchemy.orm.interfaces import MANYTOONE, MANYTOMANY
from sqlalchemy.orm import ColumnProperty, RelationshipProperty
import flask_sqla_api
from .errors import ConfigurationError, ValidationError

COLUMN = "column"
NESTED = "nested"
REFERENCE = "reference"
REFERENCE_COLLECTION = "reference_collection"

TRUE_VALUES = ("true", "1", "yes")
FALSE_VALUES = ("false", "0", "no")


class Field:
    """
    Schema path of an exposed model
    """

    def __init__(self, model, name, kind, column=None, relationship=None, python_type=None, attr_key=None):
        self.model = model
        self.name = name
        self.kind = kind
        self.column = column
        self.relationship = relationship
        self.python_type = python_type
        # attribute name on the model class, eg. the name of the relationship for references
        self.attr_key = attr_key or name

    def __repr__(self):
        return f"<Field {self.model.__name__}.{self.name} ({self.kind})>"

    @property
    def is_reference(self):
        return self.kind in (REFERENCE, REFERENCE_COLLECTION)

    @property
    def target(self):
        """
        :return: the model referenced by this field
        """
        if self.relationship is None:
            return None
        return self.relationship.mapper.class_

    @property
    def root(self):
        return self.name.split(".")[0]

    @property
    def subpath(self):
        return self.name.split(".")[1:]

    def expression(self):
        """
        :return: sqla expression that can be used in query criteria for this field
        """
        if self.kind == COLUMN:
            return getattr(self.model, self.attr_key)
        if self.kind == REFERENCE:
            fk_column = list(self.relationship.local_columns)[0]
            return getattr(self.model, self.relationship.parent.get_property_by_column(fk_column).key)
        if self.kind == NESTED:
            json_col = getattr(self.model, self.root)
            subpath = self.subpath
            element = json_col[subpath[0]] if len(subpath) == 1 else json_col[tuple(subpath)]
            if self.python_type is bool:
                return element.as_boolean()
            if self.python_type is int:
                return element.as_integer()
            if self.python_type is float:
                return element.as_float()
            if self.python_type is str:
                return element.as_string()
            return element.as_json()
        # reference collections are queried through relationship.any(), cfr. query.py
        return getattr(self.model, self.attr_key)

    def coerce(self, value):
        """
        Parse the supplied `value` so it can be saved or compared

        :param value: request value (json or query string)
        :return: processed value
        """
        return parse_value(self.python_type, value, self.name)


def parse_value(python_type, value, name=""):
    """
    :param python_type: python type of the column or nested path, None means no coercion
    :param value: value to be parsed
    :param name: field name, used in the error message
    :return: value of type `python_type`
    """
    if value is None or python_type is None:
        return value

    # skip type coercion on JSON documents, since they could be anything
    if python_type in (dict, list):
        return value

    if isinstance(value, python_type) and not (python_type is int and isinstance(value, bool)):
        return value

    try:
        if python_type is bool:
            str_val = str(value).lower()
            if str_val in TRUE_VALUES:
                return True
            if str_val in FALSE_VALUES:
                return False
            raise ValueError(f"invalid boolean {value}")
        if python_type is datetime.datetime:
            return datetime.datetime.fromisoformat(str(value))
        if python_type is datetime.date:
            return datetime.date.fromisoformat(str(value))
        if python_type is datetime.time:
            return datetime.time.fromisoformat(str(value))
        return python_type(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f'Cast to {python_type.__name__} failed for value "{value}" at path "{name}"') from exc


def _column_python_type(column):
    try:
        return column.type.python_type
    except NotImplementedError as exc:
        # custom column types should implement their own parsing
        flask_sqla_api.log.debug(exc)
        return None


def _nested_fields(model, prefix, declaration):
    """
    :param prefix: dotted path of the (parent) document
    :param declaration: dict of subpath name to python type or nested declaration
    """
    for name, decl in declaration.items():
        path = f"{prefix}.{name}"
        if isinstance(decl, dict):
            yield Field(model, path, NESTED, python_type=dict)
            yield from _nested_fields(model, path, decl)
        else:
            yield Field(model, path, NESTED, python_type=decl)


class ModelFields:
    """
    Ordered collection of the Field descriptors of a model
    """

    def __init__(self, model):
        self.model = model
        self.fields = OrderedDict()
        self.primary_key = None
        self.version_key = None
        self._reflect()

    def _reflect(self):
        model = self.model
        mapper = sqlalchemy.inspect(model)
        if len(mapper.primary_key) != 1:
            raise ConfigurationError(f"{model.__name__}: a single column primary key is required")
        pk_column = mapper.primary_key[0]
        version_column = mapper.version_id_col

        # foreign key columns used by references are represented by the reference field
        reference_columns = set()
        for rel in mapper.relationships:
            if rel.direction == MANYTOONE:
                reference_columns.update(rel.local_columns)

        for prop in mapper.attrs:
            if isinstance(prop, ColumnProperty):
                column = prop.columns[0]
                if column is pk_column:
                    self.primary_key = prop.key
                elif column in reference_columns:
                    continue
                if version_column is not None and column is version_column:
                    self.version_key = prop.key
                python_type = _column_python_type(column)
                self.add(Field(model, prop.key, COLUMN, column=column, python_type=python_type))
                declaration = column.info.get("fields")
                if isinstance(column.type, sqlalchemy.JSON) and declaration:
                    for field in _nested_fields(model, prop.key, declaration):
                        self.add(field)
            elif isinstance(prop, RelationshipProperty):
                if prop.viewonly or prop.info.get("reverse", False):
                    continue
                if prop.direction == MANYTOONE:
                    self.add(Field(model, prop.key, REFERENCE, relationship=prop))
                elif prop.direction == MANYTOMANY:
                    self.add(Field(model, prop.key, REFERENCE_COLLECTION, relationship=prop, python_type=list))

    def add(self, field):
        self.fields[field.name] = field

    def get(self, name):
        return self.fields.get(name)

    def __getitem__(self, name):
        return self.fields[name]

    def __contains__(self, name):
        return name in self.fields

    def __iter__(self):
        return iter(self.fields.values())

    def top_level(self):
        """
        :return: the fields that are stored as model attributes, ie. without the nested paths
        """
        return [field for field in self if field.kind != NESTED]

    @property
    def references(self):
        return [field for field in self if field.is_reference]

    @property
    def pk_field(self):
        return self.fields[self.primary_key]

    def searchable(self):
        """
        :return: the columns used for text search, `api_search_fields` may be set on the model
        """
        names = getattr(self.model, "api_search_fields", None)
        if names is not None:
            return [self[name] for name in names]
        return [field for field in self if field.kind == COLUMN and isinstance(field.column.type, sqlalchemy.String)]


@lru_cache(maxsize=None)
def get_fields(model) -> ModelFields:
    """
    :param model: sqla model class
    :return: ModelFields of the model
    """
    return ModelFields(model)


def resolve_field(model, name):
    """
    :param model: sqla model class
    :param name: field name or dotted path
    :return: Field
    """
    field = get_fields(model).get(name)
    if field is None:
        raise ValidationError(f'Unknown field "{name}" for {model.__name__}')
    return field
