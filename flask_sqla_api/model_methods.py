#
# Per model operations
#
# An exposed model can implement the operations it wants to customize:
#
#   def api_values(self, request)              -> dict (or awaitable), serialization
#   @classmethod api_post(cls, data, request)  -> created instance
#   def api_put(self, data, request)           -> updated instance
#   def api_delete(self, request)              -> None
#   @classmethod api_sub_routes(cls)           -> {name: callable(instance)}
#   @classmethod on_list_query(cls, list_query, request)
#
# The operations that aren't implemented by the model are provided by DefaultModelMethods.
# The lookup happens once, when the model is exposed. When the api is created with
# set_defaults=False, the missing operations raise an error and models without api_values
# aren't exposed.
#
import inspect
import flask_sqla_api
from .errors import GenericError
from .serialize import serialize
from .upsert import upsert, update, CREATE

OPERATIONS = ("api_values", "api_post", "api_put", "api_delete", "api_sub_routes", "on_list_query")


class DefaultModelMethods:
    """
    Default implementation of the model operations
    """

    @staticmethod
    def values(instance, context):
        return serialize(instance, context)

    @staticmethod
    def post(model, data, request, mode=CREATE):
        return upsert(model, data, mode)

    @staticmethod
    def put(instance, data, request):
        return update(instance, data)

    @staticmethod
    def delete(instance, request):
        flask_sqla_api.DB.session.delete(instance)
        flask_sqla_api.DB.session.flush()

    @staticmethod
    def sub_routes(model):
        return None

    @staticmethod
    def on_list_query(list_query, request):
        return None


class ModelMethods:
    """
    The operations of an exposed model
    """

    def __init__(self, model, set_defaults=True):
        """
        :param model: sqla model
        :param set_defaults: use the default implementation for the operations the model doesn't implement
        """
        self.model = model
        self.set_defaults = set_defaults
        self.custom = {name: getattr(model, name) for name in OPERATIONS if callable(getattr(model, name, None))}
        flask_sqla_api.log.debug(f"{model.__name__} implements {list(self.custom.keys())}")

    def __repr__(self):
        return f"<ModelMethods {self.model.__name__}>"

    @property
    def exposed(self):
        """
        :return: whether the model can be exposed
        """
        return self.set_defaults or "api_values" in self.custom

    def _unsupported(self, operation):
        raise GenericError(f"{operation} is not supported by {self.model.__name__}")

    def values(self, instance, context):
        """
        :param instance: instance of self.model
        :param context: SerializeContext
        :return: serialized instance or an awaitable
        """
        if "api_values" not in self.custom:
            if not self.set_defaults:
                self._unsupported("api_values")
            return DefaultModelMethods.values(instance, context)

        result = instance.api_values(context.request)
        if inspect.isawaitable(result):
            return self._finalize_async(instance, context, result)
        return context.finalize(instance, result)

    @staticmethod
    async def _finalize_async(instance, context, awaitable):
        return context.finalize(instance, await awaitable)

    def post(self, data, request, mode=CREATE):
        """
        :return: the created (or updated/replaced, depending on the create mode) instance
        """
        if mode == CREATE and "api_post" in self.custom:
            return self.model.api_post(data, request)
        if not self.set_defaults:
            self._unsupported("api_post")
        return DefaultModelMethods.post(self.model, data, request, mode)

    def put(self, instance, data, request):
        if "api_put" in self.custom:
            return instance.api_put(data, request)
        if not self.set_defaults:
            self._unsupported("api_put")
        return DefaultModelMethods.put(instance, data, request)

    def delete(self, instance, request):
        if "api_delete" in self.custom:
            return instance.api_delete(request)
        if not self.set_defaults:
            self._unsupported("api_delete")
        return DefaultModelMethods.delete(instance, request)

    def sub_routes(self):
        """
        :return: the custom sub routes of the model or None
        """
        if "api_sub_routes" in self.custom:
            return self.model.api_sub_routes()
        return DefaultModelMethods.sub_routes(self.model)

    def on_list_query(self, list_query, request):
        if "on_list_query" in self.custom:
            self.model.on_list_query(list_query, request)
        return DefaultModelMethods.on_list_query(list_query, request)
