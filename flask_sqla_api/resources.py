#  This file contains the flask-restful "Resource" objects:
#  - CollectionResource for the model collections (list, create)
#  - InstanceResource for the model instances (get, put, patch, delete)
#  - SubRouteResource for the relations of an instance
#
#  The classes are subclassed for every exposed model by the APIRouter
#
# pylint: disable=no-member
import werkzeug
from functools import wraps
from flask import request
from flask_restful import Resource as FRResource, abort
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query
import flask_sqla_api
from .errors import APIError, error_body
from .query import ListQuery, run_list_query, parse_populate
from .serialize import SerializeContext, serialize_many
from .upsert import get_instance
from .util import run_sync


class Resource(FRResource):
    """
    Superclass for the exposed endpoints
    """

    # model: the sqla model class of the exposed collection
    model = None
    # router: the APIRouter that created the class
    router = None

    @property
    def api(self):
        return self.router.api

    @property
    def model_methods(self):
        return self.router.model_methods

    def context(self, populate=(), projection=None):
        """
        :return: SerializeContext for the current request
        """
        return SerializeContext(
            request,
            expose_version_key=self.api.expose_version_key,
            model_name_field=self.api.model_name_field,
            populate=populate,
            projection=projection,
            methods_for=self.api.methods_for,
        )

    def instance_response(self, instance, model_methods=None):
        """
        :return: the serialized instance, the populate request argument is applied
        """
        if model_methods is None:
            model_methods = self.api.methods_for(type(instance))
        populate = parse_populate(type(instance), request.populate)
        return run_sync(model_methods.values(instance, self.context(populate)))

    def list_response(self, list_query, model_methods):
        """
        :param list_query: ListQuery
        :return: {"total": ..., "items": [...]}
        """
        result = run_list_query(list_query, request.list_params, request, model_methods.on_list_query)
        context = self.context(result.populate, result.projection)
        items = run_sync(serialize_many(result.items, context, model_methods))
        return {"total": result.total, "items": items}


class CollectionResource(Resource):
    """
    /<prefix><collection>
    """

    def get(self):
        """
        List the collection
        """
        list_query = ListQuery(self.model, flask_sqla_api.DB.session.query(self.model))
        return self.list_response(list_query, self.model_methods)

    def post(self):
        """
        Create a new instance, the X-HTTP-Method header selects the create mode
        """
        data = request.get_payload()
        mode = request.get_create_mode(self.api.create_mode_header)
        instance = self.model_methods.post(data, request, mode)
        return self.instance_response(instance, self.model_methods)


class InstanceResource(Resource):
    """
    /<prefix><collection>/<id>
    """

    def get(self, object_id):
        instance = get_instance(self.model, object_id)
        return self.instance_response(instance, self.model_methods)

    def put(self, object_id):
        """
        Update: set the non-null payload values and remove the null values
        """
        instance = get_instance(self.model, object_id)
        data = request.get_payload()
        result = self.model_methods.put(instance, data, request)
        if result is None:
            result = instance
        return self.instance_response(result, self.model_methods)

    patch = put

    def delete(self, object_id):
        instance = get_instance(self.model, object_id)
        self.model_methods.delete(instance, request)
        return {"success": True}


class SubRouteResource(Resource):
    """
    /<prefix><collection>/<id>/<relation name>
    """

    relation = None

    def get(self, object_id):
        instance = get_instance(self.model, object_id)
        data = run_sync(self.relation.resolve(instance))
        if data is None:
            return None
        if isinstance(data, Query):
            target = data.column_descriptions[0]["entity"]
            return self.list_response(ListQuery(target, data), self.api.methods_for(target))
        if isinstance(data, (list, tuple)):
            items = run_sync(serialize_many(list(data), self.context()))
            return {"total": len(items), "items": items}
        return self.instance_response(data)


def http_method_decorator(fun):
    """Decorator for the HTTP methods (get, post, put, patch, delete)
    - run the auth hook
    - commit the database
    - convert all exceptions to a json error response

    This method will be called for all requests
    :param fun:
    :return: wrapped fun
    """

    @wraps(fun)
    def method_wrapper(self, *args, **kwargs):
        """Wrap the method and perform error handling
        :return: result of the wrapped method
        """
        status_code = 500
        message = ""
        try:
            self.api.authorize(request)
            result = fun(self, *args, **kwargs)
            flask_sqla_api.DB.session.commit()
            return result

        except APIError as exc:
            status_code = exc.status_code
            message = exc.message

        except werkzeug.exceptions.HTTPException as exc:
            status_code = exc.code
            message = exc.description
            flask_sqla_api.log.error(message)

        except SQLAlchemyError as exc:
            flask_sqla_api.log.exception(exc)
            message = str(getattr(exc, "orig", None) or exc)

        except Exception as exc:
            flask_sqla_api.log.exception(exc)
            status_code = getattr(exc, "status_code", status_code)
            message = str(exc)

        if status_code not in werkzeug.exceptions.default_exceptions:
            status_code = 500
        flask_sqla_api.DB.session.rollback()
        abort(status_code, **error_body(status_code, message))

    return method_wrapper


def api_decorator(cls):
    """Decorate the http methods of the generated resource classes

    :param cls: The class that will be decorated (e.g. CollectionResource)
    :return: decorated class
    """
    for method_name in ["get", "post", "put", "patch", "delete"]:
        method = getattr(cls, method_name, None)
        if not method:
            continue
        decorated_method = http_method_decorator(method)
        # The user can add custom decorators, specified as class variable list
        for custom_decorator in getattr(cls.model, "custom_decorators", []):
            decorated_method = custom_decorator(decorated_method)
        setattr(cls, method_name, decorated_method)
    return cls
