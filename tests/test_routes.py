"""Tests for route table construction and mounting."""

import pytest
from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient
from starlette.responses import PlainTextResponse

from handlerspine.core.errors import DuplicateRouteError, EmptyHandlerSetError, InvalidHandlerError
from handlerspine.discovery import DirectorySource, StaticSource, discover
from handlerspine.routes import build_route_table, setup_routes


def get_a(request):
    return {"route": "a", "verb": "GET"}


async def post_a(request):
    body = await request.json()
    return {"route": "a", "verb": "POST", "echo": body}


def get_b(request):
    return PlainTextResponse("b")


@pytest.fixture
def source():
    return StaticSource(
        {
            "a/get.py": get_a,
            "a/post.py": post_a,
            "b/get.py": get_b,
        },
        root="/srv/rest",
    )


def client_for(router: APIRouter) -> TestClient:
    app = FastAPI()
    app.include_router(router)
    return TestClient(app)


class TestRouteTable:
    def test_every_path_gets_all_verbs_in_fixed_order(self, source):
        table = setup_routes(APIRouter(), source)

        assert [(e.path, e.verb, e.allowed) for e in table] == [
            ("/a", "GET", True),
            ("/a", "POST", True),
            ("/a", "PUT", False),
            ("/a", "PATCH", False),
            ("/a", "DELETE", False),
            ("/b", "GET", True),
            ("/b", "POST", False),
            ("/b", "PUT", False),
            ("/b", "PATCH", False),
            ("/b", "DELETE", False),
        ]
        assert len(table) == 10
        assert table.paths == ["/a", "/b"]

    def test_real_handlers_are_the_loaded_callables(self, source):
        table = setup_routes(APIRouter(), source)
        assert table.get("/a", "get").handler is get_a
        assert table.get("/a", "POST").handler is post_a
        assert table.get("/c", "GET") is None

    def test_describe(self, source):
        described = setup_routes(APIRouter(), source).describe()
        assert described[0] == {"path": "/a", "verb": "GET", "status": "handler", "handler": "get_a"}
        assert described[2]["status"] == "405"

    def test_auxiliary_files_are_ignored(self):
        table = build_route_table(discover(StaticSource({"a/get.py": get_a, "a/helpers.py": object()})))
        assert table.paths == ["/a"]

    def test_root_path(self):
        table = build_route_table(discover(StaticSource({"get.py": get_a})))
        assert table.get("/", "GET").allowed


class TestFailures:
    @pytest.mark.parametrize(
        "paths",
        [
            ["hello/get.py", "hello/GET.py"],
            ["hello/GET.py", "hello/get.py"],
        ],
    )
    def test_duplicate_route_in_either_order(self, paths):
        router = APIRouter()
        source = StaticSource({path: get_a for path in paths})

        with pytest.raises(DuplicateRouteError) as exc_info:
            setup_routes(router, source)

        assert exc_info.value.path == "/hello"
        assert exc_info.value.verb == "GET"
        assert router.routes == []

    def test_empty_source(self):
        router = APIRouter()
        with pytest.raises(EmptyHandlerSetError):
            setup_routes(router, StaticSource({}))
        assert router.routes == []

    def test_only_auxiliary_files(self):
        with pytest.raises(EmptyHandlerSetError):
            setup_routes(APIRouter(), StaticSource({"a/helpers.py": get_a}))

    def test_non_callable_handler(self):
        router = APIRouter()
        with pytest.raises(InvalidHandlerError):
            setup_routes(router, StaticSource({"a/get.py": object()}))
        assert router.routes == []


class TestMountedRoutes:
    def test_requests_reach_handlers(self, source):
        router = APIRouter()
        setup_routes(router, source)
        client = client_for(router)

        assert client.get("/a").json() == {"route": "a", "verb": "GET"}
        assert client.post("/a", json={"x": 1}).json()["echo"] == {"x": 1}
        assert client.get("/b").text == "b"

    def test_unregistered_verb_is_405_with_allow(self, source):
        router = APIRouter()
        setup_routes(router, source)
        client = client_for(router)

        response = client.delete("/a")
        assert response.status_code == 405
        assert response.headers["allow"] == "GET, POST"
        assert response.content == b""

        response = client.put("/b")
        assert response.status_code == 405
        assert response.headers["allow"] == "GET"

    def test_unknown_path_is_404(self, source):
        router = APIRouter()
        setup_routes(router, source)
        assert client_for(router).get("/missing").status_code == 404

    def test_prefix(self, source):
        router = APIRouter()
        setup_routes(router, source, prefix="/api")
        client = client_for(router)

        assert client.get("/api/a").status_code == 200
        assert client.get("/a").status_code == 404

    def test_handler_tree_on_disk(self, write_tree):
        root = write_tree(
            "rest",
            {
                "hello/get.py": "async def handler(request):\n    return {'hello': request.query_params.get('name')}\n",
                "hello/_format.py": "raise RuntimeError('never imported')\n",
            },
        )
        router = APIRouter()
        setup_routes(router, DirectorySource(root))

        assert client_for(router).get("/hello", params={"name": "ada"}).json() == {"hello": "ada"}
