"""Tests for the command-line entry point."""

import io
from unittest.mock import Mock, patch

import pytest
from rich.console import Console

from code_agent.cli import ConsoleIO
from code_agent.main import EXIT_CONFIG_ERROR, EXIT_OK, EXIT_PROTOCOL_ERROR, build_parser, main


@pytest.fixture
def console_io():
    """ConsoleIO writing into a buffer."""
    return ConsoleIO(Console(file=io.StringIO(), width=200, color_system=None))


def _printed(console_io: ConsoleIO) -> str:
    return console_io.console.file.getvalue()


@pytest.fixture
def mock_anthropic():
    """Patch the SDK client so no request can leave the process."""
    with patch("code_agent.clients.anthropic.Anthropic") as mock_cls:
        with patch.dict("os.environ", {"ANTHROPIC_API_KEY": "test-key"}):
            yield mock_cls.return_value


class TestMain:
    """Tests for main()."""

    def test_end_of_input_exits_cleanly(self, monkeypatch, console_io, mock_anthropic, tmp_path):
        """Test that closed stdin exits with status 0 without calling the backend."""
        monkeypatch.setattr("sys.stdin", io.StringIO(""))

        assert main(["--root", str(tmp_path)], io=console_io) == EXIT_OK

        mock_anthropic.messages.create.assert_not_called()
        assert "Chat with Claude" in _printed(console_io)

    def test_one_exchange_then_end_of_input(self, monkeypatch, console_io, mock_anthropic, tmp_path):
        """Test one round trip through the real client wiring."""
        monkeypatch.setattr("sys.stdin", io.StringIO("hello\n"))
        mock_anthropic.messages.create.return_value = Mock(
            content=[{"type": "text", "text": "Hi! [not markup]"}],
            usage=None,
            stop_reason="end_turn",
            model="claude-test",
        )

        assert main(["--root", str(tmp_path), "--model", "claude-flag"], io=console_io) == EXIT_OK

        kwargs = mock_anthropic.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-flag"
        assert kwargs["messages"] == [{"role": "user", "content": [{"type": "text", "text": "hello"}]}]
        assert [tool["name"] for tool in kwargs["tools"]] == ["read_file", "list_files", "edit_file"]
        assert "Claude: Hi! [not markup]" in _printed(console_io)

    def test_unknown_block_exits_nonzero(self, monkeypatch, console_io, mock_anthropic, tmp_path):
        """Test that an unrecognized content block terminates with a failure status."""
        monkeypatch.setattr("sys.stdin", io.StringIO("hello\n"))
        mock_anthropic.messages.create.return_value = Mock(
            content=[{"type": "redacted_thinking", "data": "..."}],
            usage=None,
            stop_reason="end_turn",
            model="claude-test",
        )

        assert main(["--root", str(tmp_path)], io=console_io) == EXIT_PROTOCOL_ERROR
        assert "Unknown content type 'redacted_thinking'" in _printed(console_io)

    def test_tool_trace_printed(self, monkeypatch, console_io, mock_anthropic, tmp_path):
        """Test that tool invocations are traced to the operator."""
        (tmp_path / "a.txt").write_text("alpha")
        monkeypatch.setattr("sys.stdin", io.StringIO("read a.txt\n"))
        mock_anthropic.messages.create.side_effect = [
            Mock(
                content=[{"type": "tool_use", "id": "t1", "name": "read_file", "input": {"path": "a.txt"}}],
                usage=None,
                stop_reason="tool_use",
                model="claude-test",
            ),
            Mock(content=[{"type": "text", "text": "It says alpha."}], usage=None, stop_reason="end_turn", model="m"),
        ]

        assert main(["--root", str(tmp_path)], io=console_io) == EXIT_OK

        printed = _printed(console_io)
        assert 'tool: read_file({"path": "a.txt"})' in printed
        assert "Claude: It says alpha." in printed
        second_messages = mock_anthropic.messages.create.call_args_list[1].kwargs["messages"]
        assert second_messages[-1] == {
            "role": "user",
            "content": [{"type": "tool_result", "tool_use_id": "t1", "content": "alpha", "is_error": False}],
        }

    def test_missing_api_key(self, console_io):
        """Test that a missing key exits with the configuration status."""
        with patch.dict("os.environ", {}, clear=True):
            assert main([], io=console_io) == EXIT_CONFIG_ERROR
        assert "ANTHROPIC_API_KEY" in _printed(console_io)


class TestParser:
    """Tests for argument parsing."""

    def test_defaults(self):
        """Test parser defaults."""
        args = build_parser().parse_args([])
        assert args.model is None
        assert args.root is None

    def test_log_level_normalized(self):
        """Test that the log level is case-insensitive."""
        assert build_parser().parse_args(["--log-level", "debug"]).log_level == "DEBUG"
