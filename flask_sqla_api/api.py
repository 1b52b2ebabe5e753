# flask_restful API subclass
from collections import OrderedDict
import flask_restful
from flask.app import Flask
from werkzeug.exceptions import HTTPException
import flask_sqla_api
from .app_init import FlaskSqlaAPI
from .errors import error_body
from .model_methods import ModelMethods
from .relations import discover
from .router import APIRouter, VERB_ROUTES
from .swagger_doc import SwaggerDoc
from .util import run_sync


def _option(app, value, name):
    """
    :return: value, or the app.config value, or the FlaskSqlaAPI default
    """
    if value is not None:
        return value
    return app.config.get(name, getattr(FlaskSqlaAPI, name))


class API(flask_restful.Api):
    """
    Subclass of the flask_restful API class where we add the expose method
    this method creates the API endpoints for the sqla models and the corresponding swagger
    documentation

        api = API(app, prefix="/api/", check_auth=check_auth)
        api.expose(Author, Book)
    """

    def __init__(
        self,
        app: Flask,
        models=(),
        prefix: str = None,
        methods=None,
        check_auth=None,
        expose_version_key: bool = None,
        expose_model_name=None,
        set_defaults: bool = None,
        create_mode_header: str = None,
        swaggerui_blueprint: bool = None,
        description: str = "flask-sqla-api",
        app_db=None,
        **kwargs,
    ) -> None:
        """
        :param app: Flask application
        :param models: models to expose
        :param prefix: url prefix of the routes, default "/api/"
        :param methods: enabled verbs: list, get, post, patch, put, delete
        :param check_auth: callable(request), called before every request, may raise (or return an awaitable)
        :param expose_version_key: include the version column in the responses
        :param expose_model_name: True to add the model name as "__modelName", or the name of the key
        :param set_defaults: use the default operations for the operations the models don't implement
        :param create_mode_header: name of the header with the create mode (cou, cor)
        :param swaggerui_blueprint: serve the swagger ui on <prefix>docs
        """
        prefix = _option(app, prefix, "PREFIX")
        if not prefix.startswith("/"):
            prefix = "/" + prefix
        if not prefix.endswith("/"):
            prefix += "/"
        self.api_prefix = prefix
        self.check_auth = check_auth
        self.expose_version_key = _option(app, expose_version_key, "EXPOSE_VERSION_KEY")
        expose_model_name = _option(app, expose_model_name, "EXPOSE_MODEL_NAME")
        if expose_model_name is True:
            self.model_name_field = _option(app, None, "MODEL_NAME_FIELD")
        else:
            self.model_name_field = expose_model_name or None
        self.set_defaults = _option(app, set_defaults, "SET_DEFAULTS")
        self.create_mode_header = _option(app, create_mode_header, "CREATE_MODE_HEADER")
        self.methods = []
        for verb in _option(app, methods, "METHODS"):
            if verb in VERB_ROUTES:
                self.methods.append(verb)
            else:
                flask_sqla_api.log.debug(f"Ignoring unknown method {verb}")

        swaggerui_blueprint = _option(app, swaggerui_blueprint, "SWAGGER_UI")
        FlaskSqlaAPI(app, prefix=prefix, app_db=app_db, swaggerui_blueprint=swaggerui_blueprint)
        # the 404 help appends "did you mean" suggestions to the error message
        app.config.setdefault("ERROR_404_HELP", False)

        self.models = []
        self.model_methods = OrderedDict()
        self.routers = OrderedDict()
        self.swagger = SwaggerDoc(description=description, base_path="/")
        super().__init__(app, **kwargs)
        self.add_resource(self._swagger_resource(), f"{prefix}swagger.json", endpoint="api.swagger")
        if models:
            self.expose(*models)

    def _swagger_resource(self):
        swagger = self.swagger

        class SwaggerResource(flask_restful.Resource):
            def get(self):
                return swagger.to_dict()

        return SwaggerResource

    def expose(self, *models):
        """
        Expose the models: discover the relations and create the routes.
        The relations are discovered amongst the models exposed so far, the routes
        of the models exposed earlier are extended with their new reverse relations.
        A model has to be exposed after the models it references.
        :param models: sqla models, in registration order
        """
        new_models = []
        for model in models:
            model_methods = ModelMethods(model, self.set_defaults)
            if not model_methods.exposed:
                flask_sqla_api.log.info(f"Not exposing {model.__name__}: api_values is not implemented")
                continue
            self.model_methods[model] = model_methods
            self.models.append(model)
            new_models.append(model)

        relations = discover(self.models, lambda model: self.model_methods[model].sub_routes())
        # the new models may add reverse relations to the models that were exposed before
        for router in self.routers.values():
            for name, relation in relations[router.model.__name__].items():
                if name not in router.sub_routes:
                    router.add_sub_route(name, relation)

        for model in new_models:
            router = APIRouter(self, model, self.model_methods[model], self.methods, relations[model.__name__])
            router.setup_routes()
            self.routers[model.__name__] = router

    expose_object = expose

    def methods_for(self, model):
        """
        :param model: sqla model
        :return: ModelMethods of the model
        """
        model_methods = self.model_methods.get(model)
        if model_methods is None:
            model_methods = self.model_methods[model] = ModelMethods(model, self.set_defaults)
        return model_methods

    def authorize(self, request):
        """
        Run the check_auth hook, it raises when the request isn't authorized
        """
        if self.check_auth is not None:
            run_sync(self.check_auth(request))

    def handle_error(self, e):
        """
        Use the json error format for the http errors raised outside of the resources (eg. 405)
        """
        if isinstance(e, HTTPException) and not getattr(e, "data", None):
            e.data = error_body(e.code, e.description)
        return super().handle_error(e)
