"""Agent CLI command lines. Each agent reads the task document from stdin."""

from typing import Dict, List, Tuple

from ..errors import ConfigError

AGENT_PROMPT = "Execute this task"

AGENT_COMMANDS: Dict[str, Tuple[str, ...]] = {
    "claude": (
        "claude",
        "-p",
        AGENT_PROMPT,
        "--verbose",
        "--output-format",
        "text",
        "--dangerously-skip-permissions",
    ),
    "gemini": ("gemini", "--yolo", "-p", AGENT_PROMPT),
    "codex": ("codex", "exec", "--full-auto", "-"),
}

DEFAULT_AGENT = "claude"


def build_agent_command(agent: str = DEFAULT_AGENT) -> List[str]:
    try:
        return list(AGENT_COMMANDS[agent])
    except KeyError:
        choices = ", ".join(sorted(AGENT_COMMANDS))
        raise ConfigError(f"Unknown agent '{agent}' (choose from: {choices})") from None
