# Task board configuration
# Override via config.yaml (path in TASKBOARD_CONFIG) or environment variables.

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigError, Unauthenticated

CONFIG_PATH = Path("config.yaml")
BACKENDS = ("github", "local")


@dataclass
class BoardConfig:
    """Runtime configuration for the board."""

    # Which collaborator holds the tasks
    backend: str = "github"

    # Issue tracker
    owner: str = ""
    repo: str = ""
    api_url: str = "https://api.github.com"
    token: Optional[str] = None
    token_env: str = "TASKBOARD_TOKEN"
    per_page: int = 100
    timeout: float = 10
    tip_label: str = "tip"

    # Offline board
    db_path: str = "~/.local/share/taskboard/board.db"
    storage_key: str = "taskDashboard"

    # Page
    title: str = "Task Board"

    def resolve(self):
        """Apply env overrides, expand paths, and check the combination is usable."""
        if os.environ.get("TASKBOARD_DB"):
            self.db_path = os.environ["TASKBOARD_DB"]
        self.db_path = str(Path(self.db_path).expanduser())
        self.per_page = max(1, min(int(self.per_page), 100))

        if self.backend not in BACKENDS:
            raise ConfigError(f"Unknown backend '{self.backend}'. Available: {list(BACKENDS)}")
        if self.backend == "github" and not (self.owner and self.repo):
            raise ConfigError("The github backend needs both 'owner' and 'repo'")

    def resolve_token(self) -> str:
        """The bearer token from config or from the environment."""
        token = self.token or os.environ.get(self.token_env)
        if not token:
            raise Unauthenticated(
                f"No access token. Set it:  export {self.token_env}=your_token"
            )
        return token

    @classmethod
    def load(cls, path: Optional[str] = None) -> "BoardConfig":
        """Load config from YAML file, falling back to defaults."""
        path = path or os.environ.get("TASKBOARD_CONFIG")
        cfg_path = Path(path) if path else CONFIG_PATH
        data = {}
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Cannot parse {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path} must contain a mapping")
        cfg = cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})
        cfg.resolve()
        return cfg
