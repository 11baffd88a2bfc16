"""Tests for the Appwrite function entry point and the CLI."""
from __future__ import annotations

import json
import logging
import threading
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from pushfanout import cli, function
from pushfanout.config import AppConfig
from pushfanout.errors import ConfigError
from tests.conftest import push


def _context(body, headers=None) -> SimpleNamespace:
    res = MagicMock()
    res.json.side_effect = lambda data: data
    return SimpleNamespace(
        req=SimpleNamespace(body=body, headers=headers or {}),
        res=res,
        log=MagicMock(),
        error=MagicMock(),
    )


@pytest.fixture
def patched(backend):
    backend.inventory.targets = [push("t1", "u1"), push("t2", "u2")]
    with patch.object(function, "get_config", return_value=AppConfig(project_id="proj", api_key="cfg")), patch.object(
        function, "appwrite_backend", return_value=backend
    ) as factory:
        yield factory


# ===========================================================================
# function.main
# ===========================================================================

class TestFunctionMain:
    def test_success_response(self, patched, backend):
        ctx = _context(json.dumps({"title": "Hi", "body": "There"}))

        out = function.main(ctx)

        assert out["success"] is True
        assert out["targetCount"] == 2
        assert out["targets"] == ["t1", "t2"]
        assert out["messageId"] == backend.delivery.sent[0]["message_id"]
        ctx.log.assert_called()

    def test_header_key_overrides_config(self, patched):
        function.main(_context({"title": "Hi", "body": "There"}, {"X-Appwrite-Key": "from-header"}))
        assert patched.call_args.args[0].api_key == "from-header"

    def test_validation_failure_logged_to_error(self, patched):
        ctx = _context("{bad")

        out = function.main(ctx)

        assert out == {"success": False, "targetCount": 0, "error": "Invalid JSON in request body"}
        ctx.error.assert_called()
        assert patched.return_value.delivery.count == 0

    def test_config_error_is_structured(self):
        ctx = _context("{}")
        with patch.object(function, "get_config", side_effect=ConfigError("config: bad")):
            out = function.main(ctx)
        assert out == {"success": False, "targetCount": 0, "error": "config: bad"}

    def test_context_cleared_after_call(self, patched):
        function.main(_context({"title": "Hi", "body": "There"}))
        function.main(_context({"title": "Again", "body": "There"}))

        assert function.current_context.get() is None
        forwarding = [h for h in logging.getLogger("pushfanout").handlers if isinstance(h, function.ContextLogHandler)]
        assert len(forwarding) == 1

    def test_logs_outside_an_invocation_are_not_forwarded(self, patched):
        ctx = _context({"title": "Hi", "body": "There"})
        function.main(ctx)
        ctx.log.reset_mock()

        logging.getLogger("pushfanout.service").info("background work")

        ctx.log.assert_not_called()

    def test_concurrent_invocations_keep_logs_apart(self, backend):
        barrier = threading.Barrier(2, timeout=5)

        def slow_inventory():
            barrier.wait()
            return [push("t1", "u1")]

        backend.inventory = MagicMock()
        backend.inventory.list_targets.side_effect = slow_inventory
        ctx_a = _context({"title": "AAA", "body": "first"})
        ctx_b = _context({"title": "BBB", "body": "second"})
        results = {}

        def call(name, ctx):
            results[name] = function.main(ctx)

        with patch.object(function, "get_config", return_value=AppConfig(project_id="proj")), patch.object(
            function, "appwrite_backend", return_value=backend
        ):
            threads = [
                threading.Thread(target=call, args=("a", ctx_a)),
                threading.Thread(target=call, args=("b", ctx_b)),
            ]
            for t in threads:
                t.start()
            for t in threads:
                t.join(timeout=10)

        assert results["a"]["success"] is True
        assert results["b"]["success"] is True
        lines_a = " ".join(c.args[0] for c in ctx_a.log.call_args_list)
        lines_b = " ".join(c.args[0] for c in ctx_b.log.call_args_list)
        assert "AAA" in lines_a and "BBB" not in lines_a
        assert "BBB" in lines_b and "AAA" not in lines_b
        assert results["a"]["messageId"] in lines_a
        assert results["a"]["messageId"] not in lines_b


# ===========================================================================
# CLI
# ===========================================================================

class TestCli:
    def test_parse_data_keeps_json_types(self):
        assert cli._parse_data(["count=3", "name=bob", "flag=true"]) == {"count": 3, "name": "bob", "flag": True}

    def test_parse_data_rejects_bad_pair(self):
        with pytest.raises(ValueError):
            cli._parse_data(["novalue"])

    def test_send(self, tmp_path, monkeypatch, backend, capsys):
        monkeypatch.chdir(tmp_path)
        backend.inventory.targets = [push("t1", "u1"), push("t2", "u2")]
        with patch("pushfanout.cli.build_backend", return_value=backend):
            with pytest.raises(SystemExit) as exc:
                cli.main(
                    [
                        "send",
                        "--title",
                        "Hi",
                        "--body",
                        "There",
                        "--audience",
                        "specific",
                        "--user-id",
                        "u2",
                        "--data",
                        "orderId=o-1",
                    ]
                )

        assert exc.value.code == 0
        out = json.loads(capsys.readouterr().out)
        assert out["targets"] == ["t2"]
        assert backend.delivery.sent[0]["payload"]["orderId"] == "o-1"

    def test_send_failure_exit_code(self, tmp_path, monkeypatch, backend, capsys):
        monkeypatch.chdir(tmp_path)
        with patch("pushfanout.cli.build_backend", return_value=backend):
            with pytest.raises(SystemExit) as exc:
                cli.main(["send", "--title", "Hi", "--body", "There"])

        assert exc.value.code == 1
        assert json.loads(capsys.readouterr().out)["error"] == "No push targets found"
