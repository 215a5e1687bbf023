"""
stackpilot project configuration.

Handles the per-project ``stackpilot.yaml`` file that tells the CLI how
to synthesize the configuration and where the synthesized stacks land.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from stackpilot.core.errors import ConfigurationError

PROJECT_CONFIG_FILE = "stackpilot.yaml"


@dataclass
class ProjectConfig:
    """Per-project configuration."""

    app: str | None = None
    output: str | None = None
    context: dict[str, str] = field(default_factory=dict)

    @classmethod
    def load(cls, config_file: str | Path | None = None) -> ProjectConfig:
        """
        Load project configuration from file or defaults.

        Search order:
        1. Provided config_file (must exist)
        2. stackpilot.yaml (cwd)
        3. Defaults

        Args:
            config_file: Optional explicit config file path

        Returns:
            ProjectConfig instance
        """
        if config_file:
            config_path = Path(config_file)
            if not config_path.exists():
                raise ConfigurationError(
                    "Project config file not found", details={"path": str(config_path)}
                )
            return cls._load_from_file(config_path)

        cwd_config = Path.cwd() / PROJECT_CONFIG_FILE
        if cwd_config.exists():
            return cls._load_from_file(cwd_config)

        return cls()

    @classmethod
    def _load_from_file(cls, path: Path) -> ProjectConfig:
        """Load config from YAML file."""
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a mapping")

        context = data.get("context") or {}
        if not isinstance(context, dict):
            raise ConfigurationError(f"'context' in {path} must be a mapping")
        return cls(
            app=data.get("app"),
            output=data.get("output"),
            context={str(k): str(v) for k, v in context.items()},
        )

    def save(self, path: str | Path) -> None:
        """Save configuration to file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        data: dict[str, object] = {"app": self.app}
        if self.output:
            data["output"] = self.output
        if self.context:
            data["context"] = dict(self.context)

        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
