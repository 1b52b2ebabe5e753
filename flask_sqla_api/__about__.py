__version__ = "0.1.0"
__description__ = "flask-sqla-api : SqlAlchemy models as a Flask-Restful CRUD and relationships api"
