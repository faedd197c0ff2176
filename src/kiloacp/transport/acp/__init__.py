"""ACP transport for kilo-acp."""

from kiloacp.transport.acp.agent import KiloAgent, create_agent, extract_prompt_text

__all__ = [
    "KiloAgent",
    "create_agent",
    "extract_prompt_text",
]
