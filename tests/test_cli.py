"""Tests for the command line interface."""
import importlib
import json
import logging

import httpx
import pytest
from typer.testing import CliRunner

from consultant.cli import app
from consultant.cli.providers import configure_logging
from consultant.config import MAX_IMAGE_BYTES, LogLevel
from consultant.streaming import StreamConsumer

runner = CliRunner()
cli_module = importlib.import_module("consultant.cli.app")

CHAT_URL = "https://consultant.test/functions/v1/chat"


def _reply(text: str) -> bytes:
    return f"data: {json.dumps({'choices': [{'delta': {'content': text}}]})}\n\n".encode()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the CLI at throwaway storage."""
    monkeypatch.setenv("CONSULTANT_SESSION_BACKEND", "sqlite")
    monkeypatch.setenv("CONSULTANT_DB_PATH", str(tmp_path / "sessions.db"))
    monkeypatch.setenv("CONSULTANT_STATE_PATH", str(tmp_path / "state.json"))
    monkeypatch.setenv("CONSULTANT_USER_ID", "cli-user")
    monkeypatch.delenv("CONSULTANT_URL", raising=False)
    return tmp_path


class TestRenderCommand:
    """Tests for `consultant render`."""

    def test_renders_blocks(self, tmp_path):
        """Test that headings, lists and cards are shown."""
        source = tmp_path / "reply.txt"
        source.write_text(
            "## Best sellers\n"
            "- Amber Oud\n"
            "- Rose Musk\n"
            "\n"
            "[PRODUCT_CARD]\n"
            "id: p1\n"
            "name: Amber Oud\n"
            "price: 49.00\n"
            "[/PRODUCT_CARD]\n"
        )

        result = runner.invoke(app, ["render", str(source)])

        assert result.exit_code == 0
        assert "Best sellers" in result.output
        assert "• Amber Oud" in result.output
        assert "Suggested product" in result.output

    def test_missing_file(self, tmp_path):
        """Test that a missing input file is a usage error."""
        result = runner.invoke(app, ["render", str(tmp_path / "nope.txt")])
        assert result.exit_code != 0


class TestSessionCommands:
    """Tests for `consultant new` and `consultant archive`."""

    def test_archive_empty(self, cli_env):
        """Test the archive listing with no sessions."""
        result = runner.invoke(app, ["archive"])
        assert result.exit_code == 0
        assert "No conversations yet." in result.output

    def test_new_then_archive(self, cli_env):
        """Test that a new session is remembered and listed."""
        result = runner.invoke(app, ["new", "--key", "widget"])
        assert result.exit_code == 0

        state = json.loads((cli_env / "state.json").read_text())
        session_id = state["last_session_by_key"]["widget"]
        assert session_id in result.output

        listing = runner.invoke(app, ["archive"])
        assert listing.exit_code == 0
        assert "New Conversation" in listing.output

    def test_chat_requires_url(self, cli_env):
        """Test that chatting without an endpoint fails cleanly."""
        result = runner.invoke(app, ["chat"])
        assert result.exit_code == 1
        assert "CONSULTANT_URL" in result.output


@pytest.fixture
def chat_backend(cli_env, monkeypatch):
    """Route `consultant chat` to a mock endpoint.

    Returns a function installing a request handler; every request seen
    is appended to the returned list.
    """
    requests: list[httpx.Request] = []

    def _install(handler):
        def _record(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return handler(request)

        def _consumer(active_session, console=None):
            client = httpx.AsyncClient(transport=httpx.MockTransport(_record))
            return StreamConsumer(CHAT_URL, active_session=active_session, client=client)

        monkeypatch.setattr(cli_module, "get_consumer", _consumer)
        return requests

    return _install


class TestChatCommand:
    """Tests for the interactive `consultant chat` loop."""

    def test_unreachable_endpoint_keeps_chat_open(self, chat_backend):
        """Test that a connection failure is shown and the loop continues."""

        def refuse(request):
            raise httpx.ConnectError("All connection attempts failed", request=request)

        requests = chat_backend(refuse)
        result = runner.invoke(app, ["chat"], input="hello\nagain\nq\n")

        assert result.exit_code == 0
        assert "Error: All connection attempts failed" in result.output
        assert len(requests) == 2
        assert "Goodbye!" in result.output

    def test_failed_turn_keeps_chat_open(self, chat_backend):
        """Test that a server error ends only the current turn."""
        requests = chat_backend(lambda request: httpx.Response(500, text="boom"))

        result = runner.invoke(app, ["chat"], input="hello\nagain\nq\n")

        assert result.exit_code == 0
        assert len(requests) == 2
        assert "500" in result.output

    def test_access_denied_exits(self, chat_backend):
        """Test that a denied entitlement ends the session with code 2."""
        chat_backend(lambda request: httpx.Response(403, json={"code": "NO_SUBSCRIPTION"}))

        result = runner.invoke(app, ["chat"], input="hello\nagain\nq\n")

        assert result.exit_code == 2
        assert "access pass is required" in result.output

    def test_sign_in_expired_exits(self, chat_backend):
        """Test that a 401 ends the session with code 3."""
        chat_backend(lambda request: httpx.Response(401))

        result = runner.invoke(app, ["chat"], input="hello\nq\n")

        assert result.exit_code == 3

    def test_oversized_image_rejected(self, chat_backend, tmp_path):
        """Test that local attachments over the upload limit are refused."""
        requests = chat_backend(lambda request: httpx.Response(200, content=_reply("ok")))
        image = tmp_path / "huge.jpg"
        with image.open("wb") as f:
            f.truncate(MAX_IMAGE_BYTES + 1)

        result = runner.invoke(app, ["chat"], input=f"/image {image}\nq\n")

        assert result.exit_code == 0
        assert "Image too large" in result.output
        assert "Attached" not in result.output
        assert requests == []

    def test_small_image_attached(self, chat_backend, tmp_path):
        """Test that a local attachment within the limit is sent."""
        requests = chat_backend(lambda request: httpx.Response(200, content=_reply("Lovely bottle.")))
        image = tmp_path / "bottle.jpg"
        image.write_bytes(b"\xff\xd8\xff" + b"\x00" * 1024)

        result = runner.invoke(app, ["chat"], input=f"/image {image}\nwhat is this?\nq\n")

        assert result.exit_code == 0
        assert "Attached" in result.output
        assert json.loads(requests[0].content)["image_url"] == str(image)

    def test_expand_counts_long_passages(self, chat_backend):
        """Test that /expand rejects numbers beyond the reply's long passages."""
        reply = "## Notes\n" + "Amber and oud blend into a long warm trail on the skin. " * 6
        chat_backend(lambda request: httpx.Response(200, content=_reply(reply)))

        result = runner.invoke(app, ["chat"], input="hello\n/expand 2\n/expand 1\nq\n")

        assert result.exit_code == 0
        assert "N is 1..1" in result.output


class TestLogging:
    """Tests for log level configuration."""

    @pytest.mark.parametrize("name,expected", [
        ("debug", logging.DEBUG),
        ("INFO", logging.INFO),
        ("error", logging.ERROR),
        ("verbose", logging.WARNING),
    ])
    def test_level_names(self, name, expected):
        """Test that level names map onto logging levels, defaulting to WARNING."""
        assert LogLevel.from_string(name) == expected

    def test_configure_logging_sets_package_level(self, monkeypatch):
        """Test that the environment variable applies when no option is given."""
        monkeypatch.setenv("CONSULTANT_LOG_LEVEL", "info")
        assert configure_logging() == logging.INFO
        assert logging.getLogger("consultant").level == logging.INFO
