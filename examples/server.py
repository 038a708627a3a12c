# /// script
# requires-python = ">=3.12"
# dependencies = [
#     "restmux",
#     "granian[uvloop]>=2.6.0,<3.0.0",
# ]
#
# [tool.uv.sources]
# restmux = { path = "../", editable = true }
# ///
"""ASGI server demo.

Fully functional web server using Granian + restmux Router.
"""

import asyncio
import json
import logging
import sqlite3
from json.decoder import JSONDecodeError

from granian.constants import Interfaces
from granian.server.embed import Server

from restmux import (
    ChainError,
    ContentType,
    Request,
    Response,
    RouteConfigError,
    Router,
    fail_fast,
    respond,
    wrap,
)
from restmux.errors import bad_request, not_found
from restmux.responses import json_response
from restmux.router import Handler

ADDRESS = "127.0.0.1"
PORT = 8000

_db = sqlite3.connect(":memory:")
_db.cursor().executescript("""
CREATE TABLE IF NOT EXISTS user (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL
);
""")


async def main() -> None:
    logging.basicConfig(level=logging.INFO)

    router = Router(cors_enabled=True)
    try:
        router.get("/", home)
        router.get("/user", get_users(_db))
        router.post("/user", create_user(_db)).expose_headers("Location")
        router.get("/user/{id}", get_user(_db))
        router.patch("/user/{id}", update_user(_db)).require_headers("Content-Type")
    except RouteConfigError as e:
        fail_fast(str(e))
    router.finalize()
    print(router.format_routes())

    server = Server(
        router, address=ADDRESS, port=PORT, interface=Interfaces.ASGI, log_access=True
    )
    try:
        await server.serve()
    except asyncio.CancelledError:
        pass


async def home(request: Request) -> Response:
    return respond(200, ContentType.TEXT_PLAIN, "Welcome home")


def _user_id(request: Request) -> int:
    try:
        return int(request.variables["id"])
    except ValueError as e:
        raise not_found("user not found", origin=e) from e


def _name(request: Request) -> str:
    try:
        return json.loads(request.body)["name"]
    except JSONDecodeError as e:
        raise bad_request("invalid json", origin=e) from e
    except KeyError as e:
        raise bad_request("missing name", origin=e).with_fields("name") from e


# closure over handler to inject dependencies
def get_users(db: sqlite3.Connection) -> Handler:
    async def handler(request: Request) -> Response:
        cur = db.cursor()
        cur.execute("SELECT * FROM user")
        users = [{"id": row[0], "name": row[1]} for row in cur.fetchall()]
        return json_response(200, users)

    return handler


def get_user(db: sqlite3.Connection) -> Handler:
    async def handler(request: Request) -> Response:
        user_id = _user_id(request)
        cur = db.cursor()
        cur.execute("SELECT * FROM user WHERE id = ?", (user_id,))
        result = cur.fetchone()
        if result is None:
            raise not_found("user not found")
        return json_response(200, {"id": result[0], "name": result[1]})

    return handler


def create_user(db: sqlite3.Connection) -> Handler:
    async def handler(request: Request) -> Response:
        name = _name(request)
        cur = db.cursor()
        cur.execute("INSERT INTO user (name) VALUES (?) RETURNING *", (name,))
        result = cur.fetchone()
        return json_response(
            201,
            {"id": result[0], "name": result[1]},
            [("Location", f"/user/{result[0]}")],
        )

    return handler


def update_user(db: sqlite3.Connection) -> Handler:
    async def handler(request: Request) -> Response:
        user_id = _user_id(request)
        try:
            name = _name(request)
        except ChainError as e:
            raise wrap(e, "updating user %d", user_id) from e
        cur = db.cursor()
        cur.execute(
            "UPDATE user SET name = ? WHERE id = ? RETURNING *", (name, user_id)
        )
        result = cur.fetchone()
        if result is None:
            raise not_found("user not found")
        return json_response(200, {"id": result[0], "name": result[1]})

    return handler


if __name__ == "__main__":
    asyncio.run(main())
