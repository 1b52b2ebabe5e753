#
# List query compilation: url query parameters => sqla query
#
# The stages are applied in this order:
#   search, filter, where, match, on_list_query hook, count, populate, sort, offset/limit
# the field selection ("fields") is applied by the serializer
#
# offset and limit are applied last because sqla doesn't allow ordering a limited query,
# sorting always happens before the pagination when the query is executed
#
import json
import operator
from functools import reduce
from sqlalchemy import and_, or_, not_, case, literal, true, false, func
from sqlalchemy.orm import selectinload
import flask_sqla_api
from .config import get_config
from .errors import GenericError, ValidationError
from .fields import get_fields, resolve_field, REFERENCE, REFERENCE_COLLECTION, NESTED

LIST_PARAMS = ("offset", "limit", "sort", "filter", "where", "match", "search", "fields", "populate")

ALLOWED_WHERE_METHODS = (
    "$eq",
    "$gt",
    "$gte",
    "$in",
    "$lt",
    "$lte",
    "$ne",
    "$nin",
    "$and",
    "$not",
    "$nor",
    "$or",
    "$exists",
    "$regex",
    "$options",
)

COMPARISON_OPERATORS = {
    "$eq": operator.eq,
    "$ne": operator.ne,
    "$gt": operator.gt,
    "$gte": operator.ge,
    "$lt": operator.lt,
    "$lte": operator.le,
}

REGEX_FLAGS = "imsx"


class ListQuery:
    """
    The list query that is being built, the on_list_query hook of a model
    receives this object and may modify the query in place, eg.

        @classmethod
        def on_list_query(cls, list_query, request):
            list_query.filter(cls.published.is_(True))
    """

    def __init__(self, model, query):
        self.model = model
        self.query = query
        self.score = None  # search relevance expression

    def filter(self, *criterion):
        self.query = self.query.filter(*criterion)
        return self

    def order_by(self, *clauses):
        self.query = self.query.order_by(*clauses)
        return self


class ListResult:
    """
    Result of the list query execution
    """

    def __init__(self, total, items, populate=(), projection=None):
        self.total = total
        self.items = items
        self.populate = populate
        self.projection = projection


class Projection:
    """
    Field selection: either an inclusion or an exclusion list of field names
    """

    def __init__(self, include=None, exclude=None):
        self.include = include
        self.exclude = exclude or set()

    @classmethod
    def parse(cls, fields):
        """
        :param fields: csv of field names, names prefixed with "-" are excluded
        :return: Projection or None
        """
        if not fields:
            return None
        names = [name.strip() for name in fields.replace(" ", ",").split(",") if name.strip()]
        include = {name for name in names if not name.startswith("-")}
        exclude = {name[1:] for name in names if name.startswith("-")}
        if include and exclude:
            raise GenericError("Projection cannot have a mix of inclusion and exclusion.")
        for name in include | exclude:
            if "." in name:
                raise ValidationError(f'Cannot select the nested path "{name}", select the document "{name.split(".")[0]}"')
        if include:
            return cls(include=include)
        return cls(exclude=exclude)

    def keeps(self, name, primary_key=None):
        if name in self.exclude:
            return False
        if self.include is None or name == primary_key:
            return True
        return name in self.include


def parse_int(name, value, default):
    if value in (None, ""):
        return default
    try:
        result = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name} parameter: {value}")
    if result < 0:
        raise ValidationError(f"Invalid {name} parameter: {value}")
    return result


def parse_populate(model, populate):
    """
    :param populate: list of (csv) reference names
    :return: list of reference names of `model`
    """
    if not populate:
        return []
    if isinstance(populate, str):
        populate = [populate]
    fields = get_fields(model)
    result = []
    for csv in populate:
        for name in csv.split(","):
            name = name.strip()
            if not name or name in result:
                continue
            field = fields.get(name)
            if field is None or not field.is_reference:
                raise ValidationError(f'Cannot populate path "{name}" of {model.__name__}')
            result.append(name)
    return result


def sanitize_where(where):
    """
    Recursively verify that the where object only uses allowed query methods
    :param where: parsed where json
    :raises GenericError: when a method is not allowed
    """
    if isinstance(where, dict):
        for key, value in where.items():
            if key.startswith("$") and key not in ALLOWED_WHERE_METHODS:
                raise GenericError(f"Invalid where method: {key}")
            sanitize_where(value)
    elif isinstance(where, list):
        for value in where:
            sanitize_where(value)
    return where


def parse_where(where):
    """
    :param where: json string or dict
    :return: sanitized where dict
    """
    if isinstance(where, str):
        try:
            where = json.loads(where)
        except ValueError as exc:
            raise ValidationError(f"Invalid where parameter: {exc}")
    if not isinstance(where, dict):
        raise ValidationError("The where parameter should be a json object")
    return sanitize_where(where)


def regex_pattern(pattern, options=""):
    """
    :param pattern: regular expression
    :param options: regex flags, eg "i" for case insensitive matching
    :return: pattern with the inline flags prepended
    """
    flags = "".join(flag for flag in REGEX_FLAGS if flag in (options or ""))
    if flags:
        return f"(?{flags}){pattern}"
    return pattern


def negate(criterion):
    """
    NOT criterion, where a NULL comparison (an absent field) counts as not matched
    """
    return not_(func.coalesce(criterion, false()))


def _collection_criterion(field, condition):
    """
    criterion for a reference collection: the collection contains a matching target
    """
    relationship = getattr(field.model, field.attr_key)
    target_pk = get_fields(field.target).pk_field
    return relationship.any(condition(target_pk.expression(), target_pk))


def compile_operators(field, operators):
    """
    :param field: Field
    :param operators: dict of query methods, eg {"$gte": 10, "$lt": 20}
    :return: sqla criterion
    """
    if field.kind == REFERENCE_COLLECTION:
        if set(operators) == {"$exists"}:
            relationship = getattr(field.model, field.attr_key)
            return relationship.any() if operators["$exists"] else ~relationship.any()
        return _collection_criterion(field, lambda expr, target_field: _compile_operators(expr, target_field, operators))
    return _compile_operators(field.expression(), field, operators)


def _compile_operators(expr, field, operators):
    criteria = []
    options = operators.get("$options", "")
    for method, value in operators.items():
        if method == "$options":
            continue
        if method == "$regex":
            criteria.append(expr.regexp_match(regex_pattern(value, options)))
        elif method == "$not":
            if isinstance(value, dict):
                criteria.append(negate(_compile_operators(expr, field, value)))
            else:
                criteria.append(negate(expr.regexp_match(regex_pattern(value, options))))
        elif method == "$exists":
            criteria.append(expr.is_not(None) if value else expr.is_(None))
        elif method in ("$in", "$nin"):
            if not isinstance(value, list):
                raise ValidationError(f"{method} needs an array")
            values = [_coerce(field, v) for v in value]
            if method == "$in":
                criteria.append(expr.in_(values))
            else:
                criteria.append(or_(expr.not_in(values), expr.is_(None)))
        elif method == "$ne":
            value = _coerce(field, value)
            criteria.append(expr.is_not(None) if value is None else or_(expr != value, expr.is_(None)))
        elif method in COMPARISON_OPERATORS:
            criteria.append(COMPARISON_OPERATORS[method](expr, _coerce(field, value)))
        else:
            raise ValidationError(f"Unsupported where method for {field.name}: {method}")
    return and_(true(), *criteria)


def _coerce(field, value):
    if field.kind in (REFERENCE, REFERENCE_COLLECTION):
        if field.kind == REFERENCE:
            return get_fields(field.target).pk_field.coerce(value)
        return value
    if field.kind == NESTED and field.python_type is dict:
        return value
    return field.coerce(value)


def compile_condition(model, path, condition):
    """
    :param path: field name or dotted path
    :param condition: value or query method dict
    :return: sqla criterion
    """
    field = resolve_field(model, path)
    if isinstance(condition, dict) and any(key.startswith("$") for key in condition):
        return compile_operators(field, condition)
    return compile_operators(field, {"$eq": condition})


def compile_where(model, where):
    """
    Compile the (sanitized) where object to an sqla criterion, the conditions are AND-ed
    :param model: sqla model
    :param where: dict
    :return: sqla criterion
    """
    criteria = []
    for key, value in where.items():
        if key in ("$and", "$or", "$nor"):
            if not isinstance(value, list) or not value:
                raise ValidationError(f"{key} needs a non-empty array")
            sub_criteria = [compile_where(model, sub_where) for sub_where in value]
            if key == "$and":
                criteria.append(and_(*sub_criteria))
            elif key == "$or":
                criteria.append(or_(*sub_criteria))
            else:
                criteria.append(negate(or_(*sub_criteria)))
        elif key.startswith("$"):
            raise ValidationError(f"Unsupported top level where method: {key}")
        else:
            criteria.append(compile_condition(model, key, value))
    return and_(true(), *criteria)


def apply_search(list_query, search):
    """
    Text search: every term is searched (case insensitive) in the searchable columns,
    the number of matches is used to order the results
    """
    terms = search.split()
    fields = get_fields(list_query.model).searchable()
    if not terms or not fields:
        flask_sqla_api.log.debug(f"Nothing to search in {list_query.model.__name__}")
        return
    matches = [field.expression().icontains(term, autoescape=True) for term in terms for field in fields]
    list_query.filter(or_(*matches))
    list_query.score = reduce(operator.add, [case((match, 1), else_=0) for match in matches], literal(0))


def apply_filter(list_query, filter_param):
    """
    simple equality filter: field=value or field (= true)
    """
    name, sep, value = filter_param.partition("=")
    field = resolve_field(list_query.model, name)
    list_query.filter(compile_operators(field, {"$eq": value if sep else True}))


def apply_match(list_query, match):
    """
    case sensitive pattern matching: field=regex
    """
    parts = match.split("=")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        flask_sqla_api.log.debug(f"Ignoring match parameter {match}")
        return
    field = resolve_field(list_query.model, parts[0])
    list_query.filter(field.expression().regexp_match(parts[1]))


def apply_sort(list_query, sort):
    """
    sort by csv sort= values, field names prefixed with a "-" are sorted descending
    unknown fields are ignored
    """
    clauses = []
    if list_query.score is not None:
        clauses.append(list_query.score.desc())
    fields = get_fields(list_query.model)
    for sort_attr in (sort or "").replace(" ", ",").split(","):
        if not sort_attr:
            continue
        reverse = sort_attr.startswith("-")
        if reverse:
            sort_attr = sort_attr[1:]
        field = fields.get(sort_attr.lstrip("+"))
        if field is None or field.kind == REFERENCE_COLLECTION:
            flask_sqla_api.log.warning(f"{list_query.model.__name__} has no sortable attribute {sort_attr}")
            continue
        expr = field.expression()
        clauses.append(expr.desc() if reverse else expr.asc())
    if clauses:
        list_query.order_by(*clauses)


def run_list_query(list_query, params, request=None, on_list_query=None):
    """
    Compile the list parameters into the query and execute it

    :param list_query: ListQuery
    :param params: dict with the (recognized) list parameters, other keys are ignored
    :param request: the flask request, passed to the on_list_query hook
    :param on_list_query: model hook, called with (list_query, request)
    :return: ListResult
    """
    model = list_query.model
    offset = parse_int("offset", params.get("offset"), get_config("DEFAULT_OFFSET"))
    limit = parse_int("limit", params.get("limit"), get_config("DEFAULT_LIMIT"))

    if params.get("search"):
        apply_search(list_query, params["search"])
    if params.get("filter"):
        apply_filter(list_query, params["filter"])
    if params.get("where"):
        list_query.filter(compile_where(model, parse_where(params["where"])))
    if params.get("match"):
        apply_match(list_query, params["match"])
    if on_list_query is not None:
        on_list_query(list_query, request)

    total = list_query.query.order_by(None).count()

    populate = parse_populate(model, params.get("populate"))
    for name in populate:
        list_query.query = list_query.query.options(selectinload(getattr(model, name)))

    apply_sort(list_query, params.get("sort"))
    projection = Projection.parse(params.get("fields"))

    items = list_query.query.offset(offset).limit(limit).all()
    return ListResult(total, items, populate, projection)
