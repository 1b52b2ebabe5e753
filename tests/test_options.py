from http import HTTPStatus

import pytest
from flask_sqlalchemy import SQLAlchemy

from flask_sqla_api import UnAuthorizedError

db = SQLAlchemy()


class Shelf(db.Model):
    """
    description: Shelves hold documents
    """

    __tablename__ = "shelves"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String)
    version = db.Column(db.Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}


class Document(db.Model):
    __tablename__ = "documents"
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String)
    shelf_id = db.Column(db.Integer, db.ForeignKey("shelves.id"))
    shelf = db.relationship(Shelf)
    version = db.Column(db.Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}

    api_schemas = {"routeGet": {"summary": "Get a document"}}


class Note(db.Model):
    __tablename__ = "notes"
    id = db.Column(db.Integer, primary_key=True)
    text = db.Column(db.String)

    def api_values(self, request):
        return {"id": self.id, "text": self.text}


def seed(client):
    client.post("/api/shelves", json={"id": 1, "name": "top"})
    client.post("/api/documents", json={"id": 1, "title": "doc", "shelf": 1})


def test_version_key_is_exposed_by_default(make_api) -> None:
    client = make_api(db, [Shelf, Document]).client
    seed(client)
    document = client.get("/api/documents/1", query_string={"populate": "shelf"}).get_json()
    assert document["version"] == 1
    assert document["shelf"]["version"] == 1

    shelf = client.put("/api/shelves/1", json={"name": "bottom"}).get_json()
    assert shelf["version"] == 2


def test_version_key_hidden(make_api) -> None:
    client = make_api(db, [Shelf, Document], expose_version_key=False).client
    seed(client)
    document = client.get("/api/documents/1", query_string={"populate": "shelf"}).get_json()
    assert "version" not in document
    assert document["shelf"] == {"id": 1, "name": "top"}
    assert "version" not in client.get("/api/documents").get_json()["items"][0]


def test_model_name(make_api) -> None:
    client = make_api(db, [Shelf, Document, Note], expose_model_name=True).client
    seed(client)
    document = client.get("/api/documents/1", query_string={"populate": "shelf"}).get_json()
    assert document["__modelName"] == "Document"
    assert document["shelf"]["__modelName"] == "Shelf"

    note = client.post("/api/notes", json={"text": "hello"}).get_json()
    assert note["__modelName"] == "Note"


def test_custom_model_name_key(make_api) -> None:
    client = make_api(db, [Shelf, Document], expose_model_name="kind").client
    seed(client)
    assert client.get("/api/shelves/1").get_json()["kind"] == "Shelf"


def test_check_auth(make_api) -> None:
    calls = []

    def check_auth(request):
        calls.append(request.path)
        if request.headers.get("Authorization") != "secret":
            raise UnAuthorizedError("Missing token", status_code=401)

    client = make_api(db, [Shelf, Document], check_auth=check_auth).client
    for method, url in [("get", "/api/shelves"), ("post", "/api/shelves"), ("get", "/api/shelves/1"), ("delete", "/api/shelves/1")]:
        response = getattr(client, method)(url, json={"name": "x"} if method == "post" else None)
        assert response.status_code == HTTPStatus.UNAUTHORIZED
        assert response.get_json() == {"statusCode": 401, "error": "Unauthorized", "message": "Missing token"}

    assert len(calls) == 4
    assert client.get("/api/shelves", headers={"Authorization": "secret"}).get_json()["total"] == 0

    headers = {"Authorization": "secret"}
    assert client.post("/api/shelves", json={"name": "x"}, headers=headers).status_code == HTTPStatus.OK
    assert client.get("/api/shelves", headers=headers).get_json()["total"] == 1


def test_async_check_auth(make_api) -> None:
    async def check_auth(request):
        raise UnAuthorizedError("Go away")

    client = make_api(db, [Shelf, Document], check_auth=check_auth).client
    response = client.get("/api/shelves")
    assert response.status_code == HTTPStatus.FORBIDDEN
    assert response.get_json()["message"] == "Go away"


def test_disabled_methods(make_api) -> None:
    client = make_api(db, [Shelf, Document], methods=["list", "get", "options"]).client
    assert client.get("/api/shelves").status_code == HTTPStatus.OK
    assert client.post("/api/shelves", json={"name": "x"}).status_code == HTTPStatus.METHOD_NOT_ALLOWED
    assert client.delete("/api/shelves/1").status_code == HTTPStatus.METHOD_NOT_ALLOWED
    assert client.put("/api/shelves/1", json={"name": "x"}).status_code == HTTPStatus.METHOD_NOT_ALLOWED


def test_set_defaults_disabled(make_api) -> None:
    test_api = make_api(db, [Note], set_defaults=False)
    assert list(test_api.api.routers.keys()) == ["Note"]
    response = test_api.client.post("/api/notes", json={"text": "hello"})
    assert response.status_code == HTTPStatus.INTERNAL_SERVER_ERROR
    assert "api_post" in response.get_json()["message"]

    test_api = make_api(db, [Shelf, Note], set_defaults=False)
    assert "Shelf" not in test_api.api.routers
    assert test_api.client.get("/api/shelves").status_code == HTTPStatus.NOT_FOUND


def test_prefix(make_api) -> None:
    client = make_api(db, [Shelf, Document], prefix="/v2").client
    assert client.get("/v2/shelves").status_code == HTTPStatus.OK
    assert client.get("/api/shelves").status_code == HTTPStatus.NOT_FOUND


def test_swagger(make_api) -> None:
    client = make_api(db, [Shelf, Document]).client
    swagger = client.get("/api/swagger.json").get_json()
    assert swagger["swagger"] == "2.0"
    assert swagger["paths"]["/api/documents/{id}"]["get"]["summary"] == "Get a document"
    assert swagger["paths"]["/api/shelves"]["get"]["summary"] == "List Shelf"
    assert "get" in swagger["paths"]["/api/shelves/{id}/documents"]
    tags = {tag["name"]: tag for tag in swagger["tags"]}
    assert tags["shelves"]["description"] == "Shelves hold documents"
