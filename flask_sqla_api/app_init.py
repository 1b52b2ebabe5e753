import logging
import os
import sys
from flask_swagger_ui import get_swaggerui_blueprint
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from .request import APIRequest
from .json_encoder import APIJSONProvider, APIJSONEncoder
import flask_sqla_api
import flask.app


class FlaskSqlaAPI:
    """This class configures the Flask application to serve the exposed models
    :param app: a Flask application.
    :param prefix: URL prefix where the api is hosted. Default is '/api/'
    :param LOGLEVEL: loglevel configuration variable, values from logging module (0: trace, .. 50: critical)
    """

    # Configuration defaults are stored as class variables,
    # they can be overridden in app.config or in the process environment
    DEFAULT_LIMIT = 100
    DEFAULT_OFFSET = 0
    PREFIX = "/api/"
    METHODS = ["list", "get", "post", "patch", "put", "delete"]
    EXPOSE_VERSION_KEY = True
    EXPOSE_MODEL_NAME = False
    MODEL_NAME_FIELD = "__modelName"
    CREATE_MODE_HEADER = "X-HTTP-Method"
    SET_DEFAULTS = True
    SWAGGER_UI = True
    LOGLEVEL = logging.WARNING

    def __init__(self, app: flask.app.Flask, *args, **kwargs) -> None:
        """
        Constructor
        """
        self.app = app
        self.db = None
        if app is not None:
            self.init_app(app, *args, **kwargs)

    def init_app(self, app: flask.app.Flask, prefix: str = PREFIX, app_db: SQLAlchemy = None, swaggerui_blueprint: bool = True) -> None:
        """
        Application initialization: request and json classes, database handle, swagger ui
        """
        if not isinstance(app, Flask):  # pragma: no cover
            raise TypeError("'app' should be Flask.")

        if app_db is None:
            app_db = app.extensions["sqlalchemy"]

        flask_sqla_api.DB = self.db = app_db

        app.request_class = APIRequest
        app.json = APIJSONProvider(app)
        # flask-restful serializes with the stdlib json module
        app.config.setdefault("RESTFUL_JSON", {"cls": APIJSONEncoder})
        app.url_map.strict_slashes = False

        if app.config.get("DEBUG", False):
            log.setLevel(logging.DEBUG)

        if swaggerui_blueprint:
            swaggerui_blueprint = get_swaggerui_blueprint(
                f"{prefix}docs", f"{prefix}swagger.json", config={"docExpansion": "none", "defaultModelsExpandDepth": -1}
            )
            app.register_blueprint(swaggerui_blueprint)

        # pylint: disable=unused-argument,unused-variable
        @app.teardown_appcontext
        def shutdown_session(exception=None):
            """cfr. https://flask.palletsprojects.com/en/latest/patterns/sqlalchemy/"""
            self.db.session.remove()

    @staticmethod
    def init_logging(loglevel: int = logging.WARNING) -> logging.Logger:
        """
        Specify the log format used in the webserver logs
        """
        log = logging.getLogger(__name__)
        if log.level == logging.NOTSET:
            handler = logging.StreamHandler(sys.stderr)
            formatter = logging.Formatter("[%(asctime)s] %(levelname)s: %(message)s")
            handler.setFormatter(formatter)
            log.setLevel(loglevel)
            log.addHandler(handler)
        return log


#
# DB and logging initialization
#
DB = SQLAlchemy()

try:
    DEBUG = os.getenv("DEBUG", logging.WARNING)
    LOGLEVEL = int(DEBUG)
except ValueError:  # pragma: no cover
    print(f'Invalid LogLevel in DEBUG Environment Variable! "{DEBUG}"')
    LOGLEVEL = logging.INFO

log = FlaskSqlaAPI.init_logging(LOGLEVEL)
