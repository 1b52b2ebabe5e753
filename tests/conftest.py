from types import SimpleNamespace

import pytest
from flask import Flask

from flask_sqla_api import API


def create_api(db, models, config=None, **api_kwargs):
    """
    :param db: SQLAlchemy instance of the test models
    :param models: models to expose
    :return: SimpleNamespace(app, api, client)
    """
    app = Flask("flask-sqla-api test")
    app.config.update(SQLALCHEMY_DATABASE_URI="sqlite://", TESTING=True)
    app.config.update(config or {})
    db.init_app(app)
    api_kwargs.setdefault("swaggerui_blueprint", False)
    with app.app_context():
        db.create_all()
        api = API(app, **api_kwargs)
        api.expose(*models)
    return SimpleNamespace(app=app, api=api, client=app.test_client(), db=db)


@pytest.fixture
def make_api():
    return create_api
