"""Allow running the agent with ``python -m code_agent``."""

from code_agent.main import run

run()
