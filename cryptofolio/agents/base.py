"""Base utilities for AI agents.

Thin wrappers around the OpenAI Agents SDK used by the analysis requester.
"""

import os
from typing import Any, Optional

# Disable tracing to avoid noisy 503 errors from telemetry
os.environ.setdefault("OPENAI_AGENTS_DISABLE_TRACING", "1")

from agents import Agent, ModelSettings, Runner, set_default_openai_key
from rich.console import Console


# Default model to use for agents
DEFAULT_MODEL = "gpt-4o"

# Narrative output, not deterministic extraction
DEFAULT_TEMPERATURE = 0.7

console = Console(stderr=True)


def get_model() -> str:
    """Get the model to use for agents.

    Checks OPENAI_MODEL environment variable, falls back to default.
    """
    return os.environ.get("OPENAI_MODEL", DEFAULT_MODEL)


def configure_api_key(api_key: Optional[str]) -> None:
    """Register an OpenAI API key with the Agents SDK."""
    if api_key:
        set_default_openai_key(api_key)


def create_agent(
    name: str,
    instructions: str,
    model: Optional[str] = None,
    temperature: float = DEFAULT_TEMPERATURE,
) -> Agent:
    """Create an AI agent with the specified configuration.

    Args:
        name: Name of the agent.
        instructions: System instructions for the agent.
        model: Optional model override. Uses default if not specified.
        temperature: Sampling temperature.

    Returns:
        Configured Agent instance.
    """
    return Agent(
        name=name,
        instructions=instructions,
        model=model or get_model(),
        model_settings=ModelSettings(temperature=temperature),
    )


def _log_agent_call(agent: Agent) -> None:
    console.print(f"[dim]🤖 Agent: {agent.name} | Model: {agent.model}[/dim]")


def run_agent_sync(
    agent: Agent,
    message: str,
    context: Optional[dict[str, Any]] = None,
) -> str:
    """Run an agent synchronously and return the response.

    Args:
        agent: The agent to run.
        message: User message to send to the agent.
        context: Optional context dictionary to pass to the agent.

    Returns:
        Agent's response as a string.
    """
    _log_agent_call(agent)
    result = Runner.run_sync(agent, message, context=context)
    return str(result.final_output)
