"""Tests for the command line interface."""

import json

import click
import pytest
from click.testing import CliRunner

from tasko.cli import build_app, cli, view_path
from tasko.guard import RouteGuard
from tasko.storage import MemoryStorage

from conftest import BASE_URL, stored_session

LOGIN_RESPONSE = {
    "accessToken": "tok-new",
    "refreshToken": "ref-new",
    "user": {"id": "u-1", "email": "alice@example.com", "username": "alice"},
}


class ReadOnlyStorage(MemoryStorage):
    """Reads work, every write fails like a read-only disk."""

    def update(self, items):
        raise PermissionError("read-only file system")


TODOS = [
    {"id": "t-1", "title": "Buy milk", "completed": False, "priority": "HIGH"},
    {"id": "t-2", "title": "Walk the dog", "completed": True, "priority": "LOW",
     "category": {"id": "c-1", "name": "Home"}},
]


@pytest.fixture
def runner():
    return CliRunner()


def make_app(server, items=None):
    return build_app(MemoryStorage(items), api_url=BASE_URL, transport=server.transport)


def test_help_groups_commands(runner, server):
    result = runner.invoke(cli, ["--help"], obj=make_app(server))
    assert result.exit_code == 0
    assert "Todo Commands" in result.output
    assert "Shop Commands" in result.output
    assert "Account Commands" in result.output


def test_protected_command_redirects_to_login(runner, server):
    app = make_app(server)

    result = runner.invoke(cli, ["todo", "list"], obj=app)

    assert result.exit_code == 1
    assert "Not logged in. Run 'tasko auth login' first." in result.output
    assert server.requests == []


def test_login_then_list(runner, server):
    server.route("POST", "/auth/login", json_body=LOGIN_RESPONSE)
    server.route("GET", "/todos", json_body=TODOS)
    app = make_app(server)

    result = runner.invoke(cli, ["auth", "login", "--email", "alice@example.com", "--password", "secret"], obj=app)
    assert result.exit_code == 0, result.output
    assert "Successfully logged in as alice" in result.output
    assert app.store.storage.items["token"] == "tok-new"

    result = runner.invoke(cli, ["todo", "list"], obj=app)
    assert result.exit_code == 0, result.output
    assert "Buy milk" in result.output
    assert server.last_request.headers["Authorization"] == "Bearer tok-new"


def test_list_open_todos(runner, server):
    server.route("GET", "/todos", json_body=TODOS)

    result = runner.invoke(cli, ["todo", "list", "--open"], obj=make_app(server, stored_session()))

    assert result.exit_code == 0, result.output
    assert "Buy milk" in result.output
    assert "Walk the dog" not in result.output


def test_failed_login_shows_server_message(runner, server):
    server.route("POST", "/auth/login", status=401, json_body={"message": "Invalid credentials"})
    app = make_app(server)

    result = runner.invoke(cli, ["auth", "login", "--email", "alice@example.com", "--password", "nope"], obj=app)

    assert result.exit_code == 1
    assert "Error: Invalid credentials" in result.output
    assert app.store.storage.items == {}


def test_expired_token_clears_session(runner, server):
    server.route("GET", "/todos", status=401, json_body={"message": "Token expired"})
    app = make_app(server, stored_session())

    result = runner.invoke(cli, ["todo", "list"], obj=app)

    assert result.exit_code == 1
    assert "Error: Token expired" in result.output
    assert "tasko auth login" in result.output
    assert app.store.storage.items == {}


def test_add_todo(runner, server):
    server.route("POST", "/todos", status=201, json_body={"id": "t-3", "title": "Call mom", "priority": "URGENT"})

    result = runner.invoke(
        cli,
        ["todo", "add", "Call mom", "--priority", "urgent", "--due", "2026-11-01"],
        obj=make_app(server, stored_session()),
    )

    assert result.exit_code == 0, result.output
    assert "Created todo 'Call mom'" in result.output
    assert json.loads(server.last_request.content) == {"title": "Call mom", "priority": "URGENT", "dueDate": "2026-11-01"}


def test_delete_todo_asks_first(runner, server):
    server.route("DELETE", "/todos/t-1", json_body={"success": True})
    app = make_app(server, stored_session())

    result = runner.invoke(cli, ["todo", "delete", "t-1"], obj=app, input="n\n")
    assert result.exit_code == 0
    assert server.requests == []

    result = runner.invoke(cli, ["todo", "delete", "t-1"], obj=app, input="y\n")
    assert result.exit_code == 0, result.output
    assert "Deleted todo t-1" in result.output


def test_whoami(runner, server):
    result = runner.invoke(cli, ["auth", "whoami"], obj=make_app(server, stored_session()))
    assert result.exit_code == 0, result.output
    assert "Logged in as alice" in result.output


def test_logout(runner, server):
    server.route("POST", "/auth/logout", json_body={"success": True})
    app = make_app(server, stored_session(refresh_token="ref-1"))

    result = runner.invoke(cli, ["auth", "logout"], obj=app)

    assert result.exit_code == 0, result.output
    assert "Successfully logged out" in result.output
    assert app.store.storage.items == {}


def test_checkout_with_empty_cart(runner, server):
    server.route("GET", "/cart", json_body={"id": "cart-1", "items": [], "subtotal": 0, "taxAmount": 0, "total": 0})

    result = runner.invoke(
        cli,
        ["shop", "checkout", "--address", "1 Main St", "--name", "Alice", "--phone", "555-0100"],
        obj=make_app(server, stored_session()),
    )

    assert result.exit_code == 0, result.output
    assert "Your cart is empty." in result.output
    assert all(request.method == "GET" for request in server.requests)


def test_server_error_is_reported(runner, server):
    server.route("GET", "/orders", status=500, text="<html>boom</html>")

    result = runner.invoke(cli, ["shop", "orders"], obj=make_app(server, stored_session()))

    assert result.exit_code == 1
    assert "Error: Internal server error, please try again later" in result.output


def test_view_path():
    @click.group()
    def root():
        pass

    @root.group()
    def todo():
        pass

    @todo.command("list")
    def list_cmd():
        pass

    with click.Context(root, info_name="tasko") as ctx:
        with click.Context(todo, parent=ctx, info_name="todo") as sub:
            with click.Context(list_cmd, parent=sub, info_name="list") as leaf:
                assert view_path(leaf) == "/todo/list"


class TestStorageFailures:

    def test_login_that_cannot_be_saved_is_reported(self, runner, server):
        server.route("POST", "/auth/login", json_body=LOGIN_RESPONSE)
        app = build_app(ReadOnlyStorage(), api_url=BASE_URL, transport=server.transport)

        result = runner.invoke(cli, ["auth", "login", "--email", "alice@example.com", "--password", "secret"], obj=app)

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Error: Could not save the session: read-only file system" in result.output
        assert "Successfully logged in" not in result.output

    def test_unknown_session_backend(self, runner, monkeypatch):
        monkeypatch.setenv("TASKO_SESSION_BACKEND", "floppy")

        result = runner.invoke(cli, ["todo", "list"])

        assert result.exit_code == 1
        assert isinstance(result.exception, SystemExit)
        assert "Error: Unknown session backend: 'floppy'" in result.output


class TestAccountCommands:

    def test_refresh_stores_new_token(self, runner, server):
        server.route("POST", "/auth/refresh", json_body={"accessToken": "tok-2", "refreshToken": "ref-1"})
        app = make_app(server, stored_session(refresh_token="ref-1"))

        result = runner.invoke(cli, ["auth", "refresh"], obj=app)

        assert result.exit_code == 0, result.output
        assert server.last_json() == {"refreshToken": "ref-1"}
        assert app.store.storage.items["token"] == "tok-2"
        assert app.store.storage.items["refreshToken"] == "ref-1"

    def test_refresh_without_refresh_token(self, runner, server):
        result = runner.invoke(cli, ["auth", "refresh"], obj=make_app(server, stored_session()))

        assert result.exit_code == 1
        assert "has no refresh token" in result.output
        assert server.requests == []

    def test_update_username(self, runner, server):
        server.route("PUT", "/users/u-1", json_body={"id": "u-1", "email": "alice@example.com", "username": "alice2"})
        app = make_app(server, stored_session())

        result = runner.invoke(cli, ["auth", "update", "--username", "alice2"], obj=app)

        assert result.exit_code == 0, result.output
        assert server.last_json() == {"username": "alice2"}
        assert json.loads(app.store.storage.items["user"])["username"] == "alice2"
        assert app.store.storage.items["token"] == "tok-123"

    def test_update_with_nothing_to_change(self, runner, server):
        result = runner.invoke(cli, ["auth", "update"], obj=make_app(server, stored_session()))

        assert result.exit_code == 0
        assert "Nothing to change" in result.output
        assert server.requests == []


@pytest.mark.parametrize("args, method, path", [
    (["category", "delete", "c-1", "--yes"], "DELETE", "/api/categories/c-1"),
    (["tag", "delete", "g-1"], "DELETE", "/api/tags/g-1"),
    (["comment", "delete", "m-1"], "DELETE", "/api/comments/m-1"),
    (["shop", "clear"], "DELETE", "/api/cart"),
])
def test_delete_commands(runner, server, args, method, path):
    server.route(method, path[len("/api"):], json_body={"success": True})

    result = runner.invoke(cli, args, obj=make_app(server, stored_session()))

    assert result.exit_code == 0, result.output
    assert server.last_request.method == method
    assert server.last_request.url.path == path


def test_edit_commands_send_only_given_fields(runner, server):
    server.route("PUT", "/categories/c-1", json_body={"id": "c-1", "name": "Chores", "color": "#00ff00"})
    server.route("PUT", "/tags/g-1", json_body={"id": "g-1", "name": "errands"})
    server.route("PUT", "/comments/m-1", json_body={"id": "m-1", "content": "done already"})
    app = make_app(server, stored_session())

    result = runner.invoke(cli, ["category", "edit", "c-1", "--color", "#00ff00"], obj=app)
    assert result.exit_code == 0, result.output
    assert server.last_json() == {"color": "#00ff00"}
    assert "Updated category 'Chores'" in result.output

    result = runner.invoke(cli, ["tag", "edit", "g-1", "--name", "errands"], obj=app)
    assert result.exit_code == 0, result.output
    assert server.last_json() == {"name": "errands"}

    result = runner.invoke(cli, ["comment", "edit", "m-1", "done already"], obj=app)
    assert result.exit_code == 0, result.output
    assert server.last_json() == {"content": "done already"}


class TestShopDetails:

    def test_product(self, runner, server):
        server.route("GET", "/products/p-1", json_body={
            "id": "p-1",
            "name": "Mug",
            "basePrice": 5.5,
            "skus": [{"id": "sku-1", "skuCode": "MUG-RED", "price": 5.5, "stock": 3}],
        })

        result = runner.invoke(cli, ["shop", "product", "p-1"], obj=make_app(server, stored_session()))

        assert result.exit_code == 0, result.output
        assert "Mug" in result.output
        assert "MUG-RED" in result.output

    def test_set_quantity(self, runner, server):
        server.route("PUT", "/cart/items/i-1", json_body={
            "id": "cart-1",
            "items": [{"id": "i-1", "skuId": "sku-1", "productName": "Mug", "quantity": 3, "unitPrice": 5, "itemTotal": 15}],
            "subtotal": 15,
            "taxAmount": 0,
            "total": 15,
        })

        result = runner.invoke(cli, ["shop", "set", "i-1", "3"], obj=make_app(server, stored_session()))

        assert result.exit_code == 0, result.output
        assert server.last_json() == {"quantity": 3}
        assert "Total: 15.00" in result.output

    def test_set_quantity_rejects_zero(self, runner, server):
        result = runner.invoke(cli, ["shop", "set", "i-1", "0"], obj=make_app(server, stored_session()))

        assert result.exit_code == 2
        assert server.requests == []

    def test_order(self, runner, server):
        server.route("GET", "/orders/o-1", json_body={
            "id": "o-1",
            "orderNumber": "ORD-1",
            "status": "SHIPPED",
            "totalAmount": 11,
            "recipientName": "Alice",
            "shippingAddress": "1 Main St",
            "items": [{"productName": "Mug", "skuCode": "MUG-RED", "quantity": 2}],
        })

        result = runner.invoke(cli, ["shop", "order", "o-1"], obj=make_app(server, stored_session()))

        assert result.exit_code == 0, result.output
        assert "Order ORD-1" in result.output
        assert "1 Main St" in result.output
        assert "2x" in result.output


def test_guard_is_evaluated_once_per_view(runner, server, monkeypatch):
    calls = []
    original_check = RouteGuard.check

    def counting_check(self, path=None):
        calls.append(path)
        return original_check(self, path)

    monkeypatch.setattr(RouteGuard, "check", counting_check)
    server.route("GET", "/todos", json_body=TODOS)

    result = runner.invoke(cli, ["todo", "list"], obj=make_app(server, stored_session()))

    assert result.exit_code == 0, result.output
    assert calls == ["/todo/list"]
