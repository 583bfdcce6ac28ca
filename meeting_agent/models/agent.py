"""
Agent configuration lookup for the signaling relay.

Agents are managed by the surrounding application; the relay only needs to
read an agent's persona instructions and voice when a session is created.
This module provides the read-only AgentConfiguration model and the
AgentStore registry the relay resolves agent identifiers against.
"""

import json
import logging
from pathlib import Path
from typing import Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from meeting_agent.config.constants import (
    DEFAULT_ASSISTANT_NAME,
    DEFAULT_INSTRUCTIONS,
    DEFAULT_VOICE,
    LOGGER_NAME,
)

logger = logging.getLogger(LOGGER_NAME)


class AgentConfiguration(BaseModel):
    """Persona instructions and voice for one agent."""

    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    name: str = DEFAULT_ASSISTANT_NAME
    instructions: str = DEFAULT_INSTRUCTIONS
    voice: str = Field(DEFAULT_VOICE, description="Output voice identifier")

    @field_validator("voice", mode="before")
    def default_voice(cls, v):
        """Fall back to the default voice when none is stored."""
        return v or DEFAULT_VOICE

    @field_validator("instructions")
    def validate_instructions(cls, v):
        if not v.strip():
            raise ValueError("Agent instructions cannot be empty")
        return v


DEFAULT_AGENT = AgentConfiguration()


class AgentStore:
    """
    Registry of agent configurations keyed by identifier.
    """

    def __init__(self):
        self.agents: Dict[int, AgentConfiguration] = {}

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "AgentStore":
        """
        Load agents from a JSON file holding a list of agent objects.

        A missing or unreadable file yields an empty store; every session then
        uses the default persona.
        """
        store = cls()
        path = Path(path)
        if not path.exists():
            logger.warning(f"Agents file not found: {path}")
            return store
        try:
            entries = json.loads(path.read_text(encoding="utf-8"))
            for entry in entries:
                store.add_agent(AgentConfiguration(**entry))
            logger.info(f"Loaded {len(store.agents)} agents from {path}")
        except Exception as e:
            logger.error(f"Could not load agents from {path}: {e}")
        return store

    def add_agent(self, agent: AgentConfiguration):
        if agent.id is None:
            raise ValueError("Agent configuration requires an id to be stored")
        self.agents[agent.id] = agent

    def get_agent(self, agent_id: Optional[int]) -> Optional[AgentConfiguration]:
        if agent_id is None:
            return None
        return self.agents.get(agent_id)

    def resolve(self, agent_id: Optional[int]) -> AgentConfiguration:
        """
        Return the agent for an identifier, or the default persona.

        Args:
            agent_id: Agent identifier from the request, if any

        Returns:
            The stored configuration, or DEFAULT_AGENT when absent or unknown
        """
        agent = self.get_agent(agent_id)
        if agent is None:
            if agent_id is not None:
                logger.warning(f"Agent {agent_id} not found, using default persona")
            return DEFAULT_AGENT
        return agent
