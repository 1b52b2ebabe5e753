import asyncio
import datetime
from http import HTTPStatus
from types import SimpleNamespace

import pytest
from flask_sqlalchemy import SQLAlchemy

from flask_sqla_api import ConfigurationError, GenericError, ValidationError
from flask_sqla_api.errors import error_body
from flask_sqla_api.fields import get_fields, parse_value, COLUMN, NESTED, REFERENCE
from flask_sqla_api.model_methods import ModelMethods
from flask_sqla_api.query import Projection, regex_pattern, sanitize_where, ALLOWED_WHERE_METHODS
from flask_sqla_api.upsert import parse_create_mode, CREATE, CREATE_OR_UPDATE, CREATE_OR_REPLACE
from flask_sqla_api.util import dict_merge, run_sync

db = SQLAlchemy()


class Owner(db.Model):
    __tablename__ = "owners"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String)


class Pet(db.Model):
    __tablename__ = "pets"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String)
    profile = db.Column(db.JSON, info={"fields": {"color": str}})
    owner_id = db.Column(db.Integer, db.ForeignKey("owners.id"))
    owner = db.relationship(Owner, backref="pets")


class Pair(db.Model):
    __tablename__ = "pairs"
    left = db.Column(db.Integer, primary_key=True)
    right = db.Column(db.Integer, primary_key=True)


def test_sanitize_where_allows_listed_methods() -> None:
    where = {method: 1 for method in ALLOWED_WHERE_METHODS}
    assert sanitize_where({"$and": [{"name": {"$regex": "x", "$options": "i"}}, where]})


@pytest.mark.parametrize("where", [{"$where": "x"}, {"a": {"$elemMatch": {}}}, {"$or": [{"a": 1}, {"b": {"$text": 1}}]}])
def test_sanitize_where_rejects_other_methods(where) -> None:
    with pytest.raises(GenericError) as exc_info:
        sanitize_where(where)
    assert exc_info.value.message.startswith("Invalid where method: $")
    assert exc_info.value.status_code == HTTPStatus.INTERNAL_SERVER_ERROR


def test_projection() -> None:
    include = Projection.parse("name,price")
    assert include.keeps("name")
    assert include.keeps("id", primary_key="id")
    assert not include.keeps("description")

    exclude = Projection.parse("-name")
    assert not exclude.keeps("name")
    assert exclude.keeps("description")

    assert Projection.parse("") is None
    with pytest.raises(GenericError):
        Projection.parse("name,-price")


def test_regex_pattern() -> None:
    assert regex_pattern("^a") == "^a"
    assert regex_pattern("^a", "i") == "(?i)^a"
    assert regex_pattern("^a", "xgi") == "(?ix)^a"


def test_parse_create_mode() -> None:
    assert parse_create_mode(None) == CREATE
    assert parse_create_mode("COU") == CREATE_OR_UPDATE
    assert parse_create_mode("cor") == CREATE_OR_REPLACE
    with pytest.raises(ValidationError):
        parse_create_mode("upsert")


def test_parse_value() -> None:
    assert parse_value(int, "12") == 12
    assert parse_value(bool, "false") is False
    assert parse_value(bool, True) is True
    assert parse_value(datetime.date, "2020-01-02") == datetime.date(2020, 1, 2)
    assert parse_value(dict, {"a": 1}) == {"a": 1}
    assert parse_value(None, object) is object
    with pytest.raises(ValidationError):
        parse_value(int, "twelve")
    with pytest.raises(ValidationError):
        parse_value(bool, "maybe")


def test_model_fields() -> None:
    fields = get_fields(Pet)
    assert [field.name for field in fields] == ["id", "name", "profile", "profile.color", "owner"]
    assert fields.primary_key == "id"
    assert fields.version_key is None
    assert fields["owner"].kind == REFERENCE
    assert fields["owner"].target is Owner
    assert fields["profile.color"].kind == NESTED
    assert fields["name"].kind == COLUMN
    # the backref is the reverse side of Pet.owner
    assert "pets" not in get_fields(Owner)


def test_composite_primary_key() -> None:
    with pytest.raises(ConfigurationError):
        get_fields(Pair)


def test_error_body() -> None:
    assert error_body(401, "Missing token") == {"statusCode": 401, "error": "Unauthorized", "message": "Missing token"}
    assert error_body(404)["error"] == "Not Found"


def test_dict_merge() -> None:
    dct = {"a": {"b": 1, "c": 2}, "d": 1}
    dict_merge(dct, {"a": {"b": 3}, 200: "ok"})
    assert dct == {"a": {"b": 3, "c": 2}, "d": 1, "200": "ok"}


def test_run_sync() -> None:
    async def answer():
        await asyncio.sleep(0)
        return 42

    assert run_sync(answer()) == 42
    assert run_sync(41) == 41


def test_custom_values_are_finalized() -> None:
    class Fake:
        def api_values(self, request):
            return {"id": 1, "version": 3, "request": request}

    model_methods = ModelMethods(Fake)
    context = SimpleNamespace(request="req", finalize=lambda instance, values: dict(values, finalized=True))
    assert model_methods.values(Fake(), context) == {"id": 1, "version": 3, "request": "req", "finalized": True}


def test_async_custom_values() -> None:
    class Fake:
        async def api_values(self, request):
            return {"id": 2}

    model_methods = ModelMethods(Fake)
    context = SimpleNamespace(request=None, finalize=lambda instance, values: dict(values, __modelName=type(instance).__name__))
    assert run_sync(model_methods.values(Fake(), context)) == {"id": 2, "__modelName": "Fake"}


def test_missing_operations_without_defaults() -> None:
    class Fake:
        pass

    model_methods = ModelMethods(Fake, set_defaults=False)
    assert not model_methods.exposed
    with pytest.raises(GenericError):
        model_methods.put(Fake(), {}, None)
