"""Configuration loaded from environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from .agent import AgentConfig
from .session import SessionConfig
from .tools.research import DEFAULT_SOURCE_URL


@dataclass
class ResearchConfig:
    """Configuration for the research tool."""

    source_url: str = DEFAULT_SOURCE_URL
    timeout: float = 10.0


@dataclass
class PercifyConfig:
    """Top-level configuration."""

    home: Path = field(default_factory=lambda: Path.home() / ".percify")
    agent: AgentConfig = field(default_factory=AgentConfig)
    research: ResearchConfig = field(default_factory=ResearchConfig)
    session: SessionConfig | None = None
    profile_key: str = "default"

    def __post_init__(self) -> None:
        if self.session is None:
            self.session = SessionConfig(sessions_dir=self.home / "sessions")

    @property
    def state_db_path(self) -> Path:
        return self.home / "state.db"

    @property
    def log_dir(self) -> Path:
        return self.home / "logs"


def config_from_env() -> PercifyConfig:
    """Load configuration from environment variables."""
    home = Path(os.getenv("PERCIFY_HOME", str(Path.home() / ".percify"))).expanduser()

    agent_config = AgentConfig(
        model=os.getenv("GROQ_MODEL", AgentConfig.model),
        max_turns=int(os.getenv("PERCIFY_MAX_TURNS", str(AgentConfig.max_turns))),
    )

    research_config = ResearchConfig(
        source_url=os.getenv("PERCIFY_RESEARCH_URL", DEFAULT_SOURCE_URL),
        timeout=float(os.getenv("PERCIFY_RESEARCH_TIMEOUT", "10")),
    )

    return PercifyConfig(
        home=home,
        agent=agent_config,
        research=research_config,
        profile_key=os.getenv("PERCIFY_PROFILE", "default"),
    )
