#
# Instance serialization
#
# The populated references of an instance are serialized with the serializer of their own model
# (a model may implement `api_values(self, request)`, which may be a coroutine function).
# This happens in two passes:
#   1. build the snapshot of the instance, the populated references are marked as pending
#      and their serializers are invoked
#   2. when some of the serializers returned awaitables, they're awaited concurrently
#      and the results are spliced into the pending slots
# When no references are populated, the first pass result is returned as is.
#
import asyncio
import inspect
import sqlalchemy
from .fields import get_fields, COLUMN, REFERENCE


class SerializeContext:
    """
    Request scoped serialization settings, passed down to the nested serializers
    """

    def __init__(
        self,
        request=None,
        expose_version_key=True,
        model_name_field=None,
        populate=(),
        projection=None,
        methods_for=None,
    ):
        """
        :param request: flask request, passed to the custom model serializers
        :param expose_version_key: whether the version column is included
        :param model_name_field: key that holds the model name, None to omit it
        :param populate: the reference names that are populated (on this level)
        :param projection: query.Projection (on this level)
        :param methods_for: function returning the ModelMethods of a model class
        """
        self.request = request
        self.expose_version_key = expose_version_key
        self.model_name_field = model_name_field
        self.populate = tuple(populate or ())
        self.projection = projection
        self.methods_for = methods_for

    def child(self):
        """
        :return: context for the serialization of populated references
        """
        return SerializeContext(self.request, self.expose_version_key, self.model_name_field, methods_for=self.methods_for)

    def finalize(self, instance, values):
        """
        Apply the response options to the result of a (custom) serializer
        """
        if not isinstance(values, dict):
            return values
        fields = get_fields(type(instance))
        if not self.expose_version_key and fields.version_key:
            values.pop(fields.version_key, None)
        if self.model_name_field:
            values[self.model_name_field] = type(instance).__name__
        return values


class _Pending:
    """
    Placeholder for the serialized value of a populated reference
    """

    def __init__(self, key):
        self.key = key


def identity_key(instance):
    return (type(instance), sqlalchemy.inspect(instance).identity)


def serialize_reference(related, context):
    """
    :return: the serialized `related` instance, or an awaitable
    """
    child_context = context.child()
    if context.methods_for is not None:
        return context.methods_for(type(related)).values(related, child_context)
    return serialize(related, child_context)


def _snapshot(instance, context, pending):
    """
    Create the dict representation of `instance`

    :param pending: dict where the serializer results
        of the populated references are collected
    """
    fields = get_fields(type(instance))
    projection = context.projection
    result = {}
    for field in fields.top_level():
        name = field.name
        if projection is not None and not projection.keeps(name, fields.primary_key):
            continue
        if name == fields.version_key and not context.expose_version_key:
            continue
        if field.kind == COLUMN:
            value = getattr(instance, field.attr_key)
            # NULL columns are absent
            if value is not None:
                result[name] = value
            continue

        if name not in context.populate:
            value = raw_reference(instance, field)
            if value is not None:
                result[name] = value
            continue
        related = getattr(instance, field.attr_key)
        if related is None:
            continue
        if field.kind == REFERENCE:
            result[name] = _slot(related, context, pending)
        else:
            result[name] = [_slot(item, context, pending) for item in related]

    if context.model_name_field:
        result[context.model_name_field] = type(instance).__name__
    return result


def _slot(related, context, pending):
    key = identity_key(related)
    if key not in pending:
        pending[key] = serialize_reference(related, context)
    return _Pending(key)


def raw_reference(instance, field):
    """
    :return: the stored value of a reference: the target id, or the list of target ids
    """
    if field.kind == REFERENCE:
        fk_expr = field.expression()
        return getattr(instance, fk_expr.key)
    target_pk = get_fields(field.target).primary_key
    return [getattr(item, target_pk) for item in getattr(instance, field.attr_key)]


def _splice(snapshot, resolved):
    for name, value in snapshot.items():
        if isinstance(value, _Pending):
            snapshot[name] = resolved[value.key]
        elif isinstance(value, list):
            snapshot[name] = [resolved[item.key] if isinstance(item, _Pending) else item for item in value]
    return snapshot


def serialize(instance, context):
    """
    :param instance: sqla model instance
    :param context: SerializeContext
    :return: dict, or an awaitable resolving to the dict when a nested serializer is asynchronous
    """
    pending = {}
    snapshot = _snapshot(instance, context, pending)
    if not pending:
        return snapshot

    awaitables = {key: value for key, value in pending.items() if inspect.isawaitable(value)}
    if not awaitables:
        return _splice(snapshot, pending)

    async def resolve():
        results = await asyncio.gather(*awaitables.values())
        resolved = dict(pending)
        resolved.update(zip(awaitables.keys(), results))
        return _splice(snapshot, resolved)

    return resolve()


def serialize_many(instances, context, methods=None):
    """
    :param instances: list of instances
    :param methods: ModelMethods used to serialize the instances,
        if None the ModelMethods of each instance are looked up in the context
    :return: list of dicts, or an awaitable resolving to the list
    """
    if methods is not None:
        results = [methods.values(instance, context) for instance in instances]
    elif context.methods_for is not None:
        results = [context.methods_for(type(instance)).values(instance, context) for instance in instances]
    else:
        results = [serialize(instance, context) for instance in instances]
    if not any(inspect.isawaitable(result) for result in results):
        return results

    async def resolve():
        return list(await asyncio.gather(*[_as_awaitable(result) for result in results]))

    return resolve()


async def _as_awaitable(value):
    if inspect.isawaitable(value):
        return await value
    return value
