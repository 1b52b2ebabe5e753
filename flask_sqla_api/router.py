#
# APIRouter: the routes of a single exposed model
#
#   list    GET    <prefix><collection>
#   post    POST   <prefix><collection>
#   get     GET    <prefix><collection>/<id>
#   put     PUT    <prefix><collection>/<id>
#   patch   PATCH  <prefix><collection>/<id>
#   delete  DELETE <prefix><collection>/<id>
#   sub     GET    <prefix><collection>/<id>/<relation>
#
import flask_sqla_api
from .relations import collection_name
from .resources import CollectionResource, InstanceResource, SubRouteResource, api_decorator
from .swagger_doc import route_schema

COLLECTION = "collection"
INSTANCE = "instance"

# verb => (route, http method, swagger route schema)
VERB_ROUTES = {
    "list": (COLLECTION, "GET", "routeList"),
    "post": (COLLECTION, "POST", "routePost"),
    "get": (INSTANCE, "GET", "routeGet"),
    "put": (INSTANCE, "PUT", "routePut"),
    "patch": (INSTANCE, "PATCH", "routePatch"),
    "delete": (INSTANCE, "DELETE", "routeDelete"),
}


class APIRouter:
    """
    Creates the flask-restful resources for a model and adds them to the api
    """

    def __init__(self, api, model, model_methods, methods, sub_routes):
        """
        :param api: API instance
        :param model: exposed sqla model
        :param model_methods: ModelMethods of the model
        :param methods: enabled verbs, cfr. VERB_ROUTES
        :param sub_routes: {relation name: Relation}
        """
        self.api = api
        self.model = model
        self.model_methods = model_methods
        self.methods = [verb for verb in methods if verb in VERB_ROUTES]
        self.sub_routes = sub_routes
        self.collection_name = collection_name(model)
        self.path = api.api_prefix + self.collection_name

    def __repr__(self):
        return f"<APIRouter {self.path}>"

    def http_methods(self, route):
        return [VERB_ROUTES[verb][1] for verb in self.methods if VERB_ROUTES[verb][0] == route]

    def _resource_class(self, base, suffix, **properties):
        """
        create a class of the form

        @api_decorator
        class Model_API(base):
            model = model
            router = self
        """
        properties.update({"model": self.model, "router": self})
        api_class_name = f"{self.model.__name__}_{suffix}"  # name for dynamically generated classes
        return api_decorator(type(api_class_name, (base,), properties))

    def setup_routes(self):
        swagger = self.api.swagger
        swagger.add_tag(self.model, self.collection_name)
        for verb in self.methods:
            route, http_method, schema_name = VERB_ROUTES[verb]
            path = self.path if route == COLLECTION else f"{self.path}/<object_id>"
            swagger.add_operation(path, http_method.lower(), route_schema(self.model, schema_name), self.collection_name)

        endpoint = f"api.{self.collection_name}"
        collection_methods = self.http_methods(COLLECTION)
        if collection_methods:
            api_class = self._resource_class(CollectionResource, "API")
            flask_sqla_api.log.info(f"Exposing {self.collection_name} on {self.path}, methods: {collection_methods}")
            self.api.add_resource(api_class, self.path, endpoint=endpoint, methods=collection_methods)

        instance_methods = self.http_methods(INSTANCE)
        url = f"{self.path}/<object_id>"
        if instance_methods:
            api_class = self._resource_class(InstanceResource, "API_i")
            flask_sqla_api.log.info(f"Exposing {self.model.__name__} instances on {url}, methods: {instance_methods}")
            self.api.add_resource(api_class, url, endpoint=endpoint + "Id", methods=instance_methods)

        for name, relation in self.sub_routes.items():
            self.add_sub_route(name, relation)

    def add_sub_route(self, name, relation):
        """
        Route GET <prefix><collection>/<id>/<name> to the relation
        """
        self.sub_routes[name] = relation
        sub_url = f"{self.path}/<object_id>/{name}"
        api_class = self._resource_class(SubRouteResource, f"X_{name}_API", relation=relation)
        flask_sqla_api.log.info(f"Exposing relation {name} on {sub_url}")
        self.api.add_resource(api_class, sub_url, endpoint=f"api.{self.collection_name}.{name}", methods=["GET"])
        self.api.swagger.add_operation(sub_url, "get", route_schema(self.model, "routeSub"), self.collection_name)
