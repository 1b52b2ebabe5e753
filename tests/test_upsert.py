from http import HTTPStatus

import pytest
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class Writer(db.Model):
    __tablename__ = "writers"
    id = db.Column(db.String, primary_key=True)
    name = db.Column(db.String)
    country = db.Column(db.String, default="unknown")
    books_count = db.Column(db.Integer)
    biography = db.Column(db.JSON, info={"fields": {"description": str, "born": int, "awards": {"count": int}}})


@pytest.fixture
def client(make_api):
    return make_api(db, [Writer]).client


def cou(client, data):
    return client.post("/api/writers", json=data, headers={"X-HTTP-Method": "cou"})


def cor(client, data):
    return client.post("/api/writers", json=data, headers={"X-HTTP-Method": "COR"})


def test_create_or_update_new_id_creates(client) -> None:
    response = cou(client, {"id": "w1", "name": "Bob", "books_count": 2})
    assert response.status_code == HTTPStatus.OK
    assert response.get_json() == {"id": "w1", "name": "Bob", "country": "unknown", "books_count": 2}
    assert client.get("/api/writers").get_json()["total"] == 1


def test_create_or_update_existing(client) -> None:
    cou(client, {"id": "w1", "name": "Bob", "books_count": 2, "country": "BE"})
    response = cou(client, {"id": "w1", "books_count": 3, "country": None})
    assert response.status_code == HTTPStatus.OK
    assert response.get_json() == {"id": "w1", "name": "Bob", "books_count": 3}
    assert client.get("/api/writers/w1").get_json() == {"id": "w1", "name": "Bob", "books_count": 3}
    assert client.get("/api/writers").get_json()["total"] == 1


def test_create_or_update_cast_failure_changes_nothing(client) -> None:
    cou(client, {"id": "w1", "name": "Bob", "books_count": 2})
    response = cou(client, {"id": "w1", "name": "Robert", "books_count": "many"})
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert client.get("/api/writers/w1").get_json()["name"] == "Bob"


def test_create_or_replace(client) -> None:
    cou(client, {"id": "w1", "name": "Bob", "books_count": 2, "country": "BE", "biography.born": 1960})
    response = cor(client, {"id": "w1", "name": "Robert"})
    assert response.status_code == HTTPStatus.OK
    # the replaced fields get their default or are removed
    assert response.get_json() == {"id": "w1", "name": "Robert", "country": "unknown"}
    assert client.get("/api/writers/w1").get_json() == {"id": "w1", "name": "Robert", "country": "unknown"}


def test_create_or_replace_new_id_creates(client) -> None:
    response = cor(client, {"id": "w3", "name": "Carol"})
    assert response.status_code == HTTPStatus.OK
    assert client.get("/api/writers/w3").get_json()["name"] == "Carol"


def test_duplicate_create(client) -> None:
    assert client.post("/api/writers", json={"id": "w1", "name": "Bob"}).status_code == HTTPStatus.OK
    response = client.post("/api/writers", json={"id": "w1", "name": "Bob"})
    assert response.status_code == HTTPStatus.INTERNAL_SERVER_ERROR
    assert response.get_json()["message"]
    assert client.get("/api/writers").get_json()["total"] == 1


def test_invalid_create_mode(client) -> None:
    response = client.post("/api/writers", json={"id": "w1"}, headers={"X-HTTP-Method": "upsert"})
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.get_json()["message"] == "Invalid create mode: upsert"


def test_nested_paths(client) -> None:
    response = client.post("/api/writers", json={"id": "w1", "name": "Bob", "biography.description": "Born in Ghent", "biography.born": "1960"})
    assert response.status_code == HTTPStatus.OK
    assert response.get_json()["biography"] == {"description": "Born in Ghent", "born": 1960}

    response = client.put("/api/writers/w1", json={"biography.awards.count": "2"})
    assert response.get_json()["biography"] == {"description": "Born in Ghent", "born": 1960, "awards": {"count": 2}}

    response = client.put("/api/writers/w1", json={"biography.description": None})
    assert response.get_json()["biography"] == {"born": 1960, "awards": {"count": 2}}

    response = cou(client, {"id": "w1", "biography.born": None})
    assert client.get("/api/writers/w1").get_json()["biography"] == {"awards": {"count": 2}}


def test_nested_documents_are_cast(client) -> None:
    response = client.post("/api/writers", json={"id": "w1", "biography": {"born": "1960", "extra": "x"}})
    assert response.get_json()["biography"] == {"born": 1960, "extra": "x"}


def test_nested_invalid_value(client) -> None:
    response = client.post("/api/writers", json={"id": "w1", "biography.born": "long ago"})
    assert response.status_code == HTTPStatus.BAD_REQUEST


def test_nested_where(client) -> None:
    client.post("/api/writers", json={"id": "w1", "biography.born": 1960})
    client.post("/api/writers", json={"id": "w2", "biography.born": 1980})
    result = client.get("/api/writers", query_string={"where": '{"biography.born": {"$lt": 1970}}'}).get_json()
    assert [writer["id"] for writer in result["items"]] == ["w1"]


def test_nested_field_selection(client) -> None:
    client.post("/api/writers", json={"id": "w1", "name": "Bob", "biography.born": 1960})
    result = client.get("/api/writers", query_string={"fields": "biography"}).get_json()
    assert result["items"] == [{"id": "w1", "biography": {"born": 1960}}]

    response = client.get("/api/writers", query_string={"fields": "biography.born"})
    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.get_json()["message"] == 'Cannot select the nested path "biography.born", select the document "biography"'
