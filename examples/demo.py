#!/usr/bin/env python3
"""
  This demo application demonstrates the functionality of the flask-sqla-api
  When flask-sqla-api is installed, you can run this app:
  $ python3 demo.py [Listener-IP]

  This will run the example on http://Listener-Ip:5000

  - An sqlite database is created and populated
  - The routes of the models and their relations are created
  - Swagger documentation is generated, cfr. /api/docs

  Try:
  - /api/books?populate=author&sort=-title
  - /api/authors/1/books?where={"title": {"$regex": "^test book 1", "$options": "i"}}
  - /api/authors?search=user1
"""
import sys
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_sqla_api import API

db = SQLAlchemy()


# Example sqla database objects
class Author(db.Model):
    """
    description: Author description
    """

    __tablename__ = "authors"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String, default="")
    email = db.Column(db.String, default="")
    profile = db.Column(db.JSON, info={"fields": {"city": str, "born": int}})


class Book(db.Model):
    """
    description: Book description
    """

    __tablename__ = "books"
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String, default="")
    author_id = db.Column(db.Integer, db.ForeignKey("authors.id"))
    author = db.relationship(Author, foreign_keys=[author_id])
    reviewer_id = db.Column(db.Integer, db.ForeignKey("authors.id"))
    reviewer = db.relationship(Author, foreign_keys=[reviewer_id])
    version = db.Column(db.Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}

    @classmethod
    def on_list_query(cls, list_query, request):
        # hide the drafts unless they are requested
        if request.args.get("drafts") is None:
            list_query.filter(cls.title.notlike("draft%"))


# Create the api endpoints
def create_api(app, host="localhost", port=5000, api_prefix="/api/"):
    api = API(app, prefix=api_prefix)
    api.expose(Author, Book)
    print(f"Created API: http://{host}:{port}{api_prefix}")


def create_app(host="localhost"):
    app = Flask("demo_app")
    app.config.update(SQLALCHEMY_DATABASE_URI="sqlite://")
    db.init_app(app)

    with app.app_context():
        db.create_all()
        create_api(app, host)
        # Populate the db with authors and books
        for i in range(20):
            author = Author(name=f"user{i}", email=f"email{i}@email.com", profile={"city": "Ghent", "born": 1950 + i})
            db.session.add(author)
            db.session.add(Book(title=f"test book {i}", author=author))
            db.session.add(Book(title=f"draft {i}", author=author))
        db.session.commit()

    return app


# Address where the api will be hosted, change this if you're not running the app on localhost!
host = sys.argv[1] if sys.argv[1:] else "127.0.0.1"
app = create_app(host=host)

if __name__ == "__main__":
    app.run(host=host)
