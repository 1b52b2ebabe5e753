#
# Relation discovery: the sub routes of the exposed models
#
# For every model we expose
# - the forward relations: the model's own references, named after the field,
#   the resolver returns the referenced instance (or the list of instances)
# - the reverse relations: the references of other models that target this model,
#   named after the collection name of the other model. When the name is taken
#   (two references to the same model), the name becomes <collection>_as_<field>
#
# e.g. Book.author and Book.coauthor -> Author
#   /api/authors/<id>/books              Books with author == <id>
#   /api/authors/<id>/books_as_coauthor  Books with coauthor == <id>
#
# A model can declare its own sub routes with an `api_sub_routes` classmethod returning
# a {name: callable(instance)} dict, the discovery is skipped for that model.
#
from collections import OrderedDict
import flask_sqla_api
from .errors import ConfigurationError
from .fields import get_fields, REFERENCE

FORWARD = "forward"
REVERSE = "reverse"
CUSTOM = "custom"


class Relation:
    """
    Sub route of a model: a named resolver that returns the related data of an instance
    """

    def __init__(self, name, kind, model, target=None, field=None, resolver=None):
        """
        :param name: relation name, the last part of the sub route url
        :param kind: FORWARD, REVERSE or CUSTOM
        :param model: model owning the sub route
        :param target: model of the returned instances (None if unknown)
        :param field: the reference Field (forward: field of `model`, reverse: field of `target`)
        :param resolver: custom resolver
        """
        self.name = name
        self.kind = kind
        self.model = model
        self.target = target
        self.field = field
        self.resolver = resolver

    def __repr__(self):
        return f"<Relation {self.model.__name__}.{self.name} ({self.kind})>"

    def resolve(self, instance):
        """
        :param instance: instance of self.model
        :return: a query, a list, an instance, None or an awaitable resolving to one of these
        """
        if self.kind == FORWARD:
            return getattr(instance, self.field.attr_key)
        if self.kind == REVERSE:
            attr = getattr(self.target, self.field.attr_key)
            if self.field.kind == REFERENCE:
                criterion = attr == instance
            else:
                criterion = attr.contains(instance)
            return flask_sqla_api.DB.session.query(self.target).filter(criterion)
        return self.resolver(instance)


def collection_name(model):
    """
    :return: the name of the model collection, used in the urls
    """
    return getattr(model, "api_collection_name", None) or model.__tablename__


def check_references(models):
    """
    Verify that all references target one of the exposed `models`
    :raises ConfigurationError:
    """
    for model in models:
        for field in get_fields(model).references:
            if field.target not in models:
                raise ConfigurationError(f"{model.__name__}.{field.name} references {field.target.__name__}, which is not exposed")


def default_sub_routes(model, models):
    """
    :param model: model for which we discover the relations
    :param models: all exposed models, in registration order
    :return: OrderedDict of relation name => Relation
    """
    relations = OrderedDict()

    def add(name, relation_field, **kwargs):
        if name in relations:
            name = f"{name}_as_{relation_field.name}"
        relations[name] = Relation(name, model=model, field=relation_field, **kwargs)

    for field in get_fields(model).references:
        add(field.name, field, kind=FORWARD, target=field.target)

    for other in models:
        for field in get_fields(other).references:
            if field.target is model:
                add(collection_name(other), field, kind=REVERSE, target=other)

    return relations


def custom_sub_routes(model, sub_routes):
    """
    :param sub_routes: {name: callable(instance)} as returned by the model's api_sub_routes
    :return: OrderedDict of relation name => Relation
    """
    return OrderedDict((name, Relation(name, CUSTOM, model, resolver=resolver)) for name, resolver in sub_routes.items())


def discover(models, sub_routes_for=None):
    """
    :param models: exposed models, in registration order
    :param sub_routes_for: function returning the custom sub routes of a model or None
    :return: {model name: {relation name: Relation}}
    """
    models = list(models)
    check_references(models)
    result = OrderedDict()
    for model in models:
        custom = sub_routes_for(model) if sub_routes_for else None
        if custom is not None:
            result[model.__name__] = custom_sub_routes(model, custom)
        else:
            result[model.__name__] = default_sub_routes(model, models)
        flask_sqla_api.log.debug(f"Relations of {model.__name__}: {list(result[model.__name__].keys())}")
    return result
