"""Command-line entry point."""

import argparse
import asyncio
import os
import sys
from pathlib import Path

from code_agent import __version__
from code_agent.cli import ConsoleIO
from code_agent.clients.anthropic import AnthropicClient, AnthropicConfig
from code_agent.errors import ConfigurationError, ProtocolError
from code_agent.services.agent import Agent
from code_agent.services.llm import LLMService
from code_agent.tools.registry import create_default_registry
from code_agent.utils.logging import LogConfig, get_logger, setup_logging

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_PROTOCOL_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="code-agent",
        description="Chat with Claude and let it read, list and edit files in a working directory.",
    )
    parser.add_argument("--model", help="Model name (default: $CODE_AGENT_MODEL or claude-3-7-sonnet-latest)")
    parser.add_argument("--max-tokens", type=int, help="Maximum tokens per model response")
    parser.add_argument("--system-prompt", help="Optional system prompt sent with every request")
    parser.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Directory tool paths are resolved against (default: current directory)",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "WARNING"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
        help="Log level for diagnostics written to stderr",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None, io: ConsoleIO | None = None) -> int:
    """Run one agent session and return the process exit code."""
    args = build_parser().parse_args(argv)
    setup_logging(LogConfig(level=args.log_level))

    io = io or ConsoleIO()

    try:
        config = AnthropicConfig.from_env(
            model=args.model,
            max_tokens=args.max_tokens,
            system_prompt=args.system_prompt,
        )
        client = AnthropicClient(config=config)
    except ConfigurationError as e:
        io.error(str(e))
        return EXIT_CONFIG_ERROR

    gateway = LLMService(client)
    registry = create_default_registry(root=args.root, tracer=io.tool_call)
    agent = Agent(gateway, registry, read_user_message=io.read_user_message, output=io)

    io.show_banner()
    try:
        asyncio.run(agent.run())
    except ProtocolError as e:
        logger.error(f"Fatal protocol violation: {e}")
        io.error(str(e))
        return EXIT_PROTOCOL_ERROR
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
    finally:
        usage = gateway.usage
        logger.info(
            f"Session usage - Requests: {usage.requests}, Input: {usage.input_tokens}, "
            f"Output: {usage.output_tokens}, Cache hit rate: {usage.cache_hit_rate:.1f}%"
        )

    return EXIT_OK


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
