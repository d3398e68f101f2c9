"""Configuration schema using Pydantic."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


LogLevel = Literal["silent", "error", "warning", "info", "debug"]


class SearchConfig(BaseModel):
    """Interactive memory_search defaults and fusion weights."""
    max_results: int = 5
    min_score: float = 0.5
    vector_weight: float = 0.7
    text_weight: float = 0.3
    related_limit: int = 3  # Graph neighbours attached to each hit


class AutoRecallConfig(BaseModel):
    """Auto-recall: inject relevant memories before the agent starts a turn."""
    enabled: bool = True
    limit: int = 3
    min_score: float = 0.4
    timeout_seconds: float = 3.0
    min_prompt_chars: int = 10
    snippet_chars: int = 200


class AutoCaptureConfig(BaseModel):
    """Auto-capture: store durable facts from inbound messages."""
    enabled: bool = False  # Off by default
    dup_threshold: float = 0.92
    window_seconds: float = 300.0
    max_per_window: int = 3
    cleanup_interval_seconds: float = 300.0


class WatcherConfig(BaseModel):
    """File watcher configuration."""
    enabled: bool = True
    debounce_ms: int = 1500


class OrganizeConfig(BaseModel):
    """Orphan report configuration."""
    # Paths containing any of these fragments are never reported as orphans
    exclude: list[str] = Field(
        default_factory=lambda: ["01 Journal/", "memory/", "captured/"]
    )
    inbox_dir: str = "00 Inbox"


class Config(BaseSettings):
    """Root configuration for vaultrecall."""
    model_config = SettingsConfigDict(
        env_prefix="VAULTRECALL_",
        env_nested_delimiter="__",
    )

    vault_path: str = ""  # Required; validated by the loader
    workspace_path: str = "~/.vaultrecall/workspace"
    extra_paths: list[str] = Field(default_factory=list)

    qdrant_url: str = "http://localhost:6333"
    collection: str = "vaultrecall-memory"
    ollama_url: str = "http://localhost:11434"
    embedding_model: str = "qwen3-embedding:4b"
    http_timeout: float = 30.0

    auto_index: bool = True
    log_level: LogLevel = "info"

    search: SearchConfig = Field(default_factory=SearchConfig)
    recall: AutoRecallConfig = Field(default_factory=AutoRecallConfig)
    capture: AutoCaptureConfig = Field(default_factory=AutoCaptureConfig)
    watcher: WatcherConfig = Field(default_factory=WatcherConfig)
    organize: OrganizeConfig = Field(default_factory=OrganizeConfig)

    @property
    def vault_dir(self) -> Path:
        """Get expanded vault path."""
        return Path(self.vault_path).expanduser()

    @property
    def workspace_dir(self) -> Path:
        """Get expanded workspace path."""
        return Path(self.workspace_path).expanduser()

    @property
    def state_dir(self) -> Path:
        """Directory holding the persisted lexical index and link graph."""
        return self.workspace_dir / ".vaultrecall"

    def extra_roots(self) -> list[tuple[int, Path]]:
        """Extra paths with the ordinal used in their `extra/<i>/` prefix."""
        return [
            (index, Path(entry).expanduser())
            for index, entry in enumerate(self.extra_paths)
        ]
