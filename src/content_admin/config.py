"""Configuration management for content-admin.

Settings come from three places, highest priority first:

1. CONTENT_ADMIN_* environment variables (nested sections use "__",
   e.g. CONTENT_ADMIN_WATCHER__DEBOUNCE_MS=250)
2. Overrides passed to ConfigManager.load_config()
3. content-admin.json in the project root
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

from loguru import logger
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from content_admin.schema.shim import DEFAULT_VALIDATION_MODULE, DEFAULT_VIRTUAL_MODULE

CONFIG_FILE_NAME = "content-admin.json"
PROJECT_ROOT_ENV = "CONTENT_ADMIN_PROJECT_ROOT"

DEFAULT_SCHEMA_CANDIDATES = (
    "src/content/config.py",
    "src/content/collections.py",
    "content/config.py",
    "content/collections.py",
)


class SchemaSettings(BaseModel):
    """Where schema definitions live and how they are bundled."""

    candidates: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SCHEMA_CANDIDATES),
        description="Schema-definition files relative to the project root, first match wins",
    )
    virtual_module: str = Field(
        default=DEFAULT_VIRTUAL_MODULE,
        description="Host content module name replaced by the shim",
    )
    validation_module: str = Field(
        default=DEFAULT_VALIDATION_MODULE,
        description="Validation library, never inlined",
    )
    external_modules: list[str] = Field(
        default_factory=list,
        description="Additional top-level modules that are never inlined",
    )


class WatcherSettings(BaseModel):
    """Schema file watcher."""

    enabled: bool = True
    debounce_ms: int | None = Field(
        default=None,
        ge=0,
        description="Debounce for change batches; defaults to 500 in development, 2000 otherwise",
    )


class ContentAdminConfig(BaseSettings):
    """Runtime configuration for one host project."""

    model_config = SettingsConfigDict(
        env_prefix="CONTENT_ADMIN_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    env: Literal["development", "production", "test"] = Field(
        default="development", description="Environment name"
    )
    project_root: Path = Field(
        default_factory=Path.cwd, description="Root of the host project"
    )
    content_dir: Path | None = Field(
        default=None, description="Content collections directory; defaults to src/content"
    )
    cache_dir: Path | None = Field(
        default=None,
        description="Staging directory for bundled modules; defaults to .content-admin/cache",
    )
    log_level: str = Field(default="INFO", description="Log level")

    schemas: SchemaSettings = Field(default_factory=SchemaSettings)
    watcher: WatcherSettings = Field(default_factory=WatcherSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Environment variables win over the config file and explicit overrides
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @field_validator("project_root")
    @classmethod
    def resolve_project_root(cls, v: Path) -> Path:
        return v.expanduser().resolve()

    def _under_root(self, path: Path | None, default: str) -> Path:
        if path is None:
            return self.project_root / default
        return path if path.is_absolute() else self.project_root / path

    @property
    def is_development(self) -> bool:
        return self.env == "development"

    @property
    def content_path(self) -> Path:
        return self._under_root(self.content_dir, "src/content")

    @property
    def stage_path(self) -> Path:
        return self._under_root(self.cache_dir, ".content-admin/cache")

    @property
    def schema_candidate_paths(self) -> list[Path]:
        return [self.project_root / candidate for candidate in self.schemas.candidates]

    @property
    def import_paths(self) -> list[Path]:
        """Host project roots that user schema code may import from."""
        return [self.project_root / "src", self.project_root]

    @property
    def watch_debounce_ms(self) -> int:
        if self.watcher.debounce_ms is not None:
            return self.watcher.debounce_ms
        return 500 if self.is_development else 2000


def deep_merge(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Merge overrides into base; nested dicts merge, other values replace.

    None values in overrides are ignored.
    """
    result = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        elif value is not None:
            result[key] = value
    return result


class ConfigManager:
    """Loads configuration for a host project."""

    def __init__(self, project_root: Path | None = None):
        root = project_root or os.environ.get(PROJECT_ROOT_ENV) or Path.cwd()
        self.project_root = Path(root).resolve()

    @property
    def config_file(self) -> Path:
        return self.project_root / CONFIG_FILE_NAME

    def load_file_settings(self) -> dict[str, Any]:
        """Read content-admin.json, or return {} when it does not exist."""
        if not self.config_file.exists():
            return {}
        try:
            data = json.loads(self.config_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable {self.config_file}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Ignoring {self.config_file}: expected a JSON object")
            return {}
        logger.info(f"Loaded user config from {self.config_file.name}")
        return data

    def load_config(self, **overrides: Any) -> ContentAdminConfig:
        """Build the configuration from file settings plus overrides."""
        settings = deep_merge({"project_root": self.project_root}, self.load_file_settings())
        settings = deep_merge(settings, overrides)
        return ContentAdminConfig(**settings)


# --- Project validation ---


@dataclass
class ProjectProblem:
    """A reason the project cannot be administered, with a hint to fix it."""

    message: str
    hint: str = ""


@dataclass
class ProjectValidation:
    """Result of validate_project()."""

    problems: list[ProjectProblem] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.problems


def validate_project(config: ContentAdminConfig) -> ProjectValidation:
    """Check that the project has a content directory and a schema definition."""
    result = ProjectValidation()

    if not config.project_root.is_dir():
        result.problems.append(
            ProjectProblem(
                message=f"Project root does not exist: {config.project_root}",
                hint="Run content-admin from your project root, or pass --project",
            )
        )
        return result

    if not config.content_path.is_dir():
        result.problems.append(
            ProjectProblem(
                message=f"Missing content directory: {config.content_path}",
                hint=f"mkdir -p {config.content_path}",
            )
        )

    if not any(path.is_file() for path in config.schema_candidate_paths):
        checked = ", ".join(config.schemas.candidates)
        result.problems.append(
            ProjectProblem(
                message=f"No schema-definition file found (checked {checked})",
                hint=f"Create {config.schema_candidate_paths[0]} defining collections = {{...}}",
            )
        )

    return result
