"""Pydantic configuration models with env var support.

Configuration Hierarchy (highest to lowest precedence):
1. Direct kwargs to load_config()
2. Environment variables (RECON__SECTION__KEY)
3. Repo YAML (.recon/config.yaml)
4. Global YAML (~/.config/recon/config.yaml)
5. Built-in defaults (this file)

Environment Variable Format:
    RECON__<SECTION>__<KEY>=<VALUE>

Examples:
    RECON__LOGGING__LEVEL=DEBUG
    RECON__ORIENT__MAX_MODULES=12
    RECON__RECALL__DEFAULT_LIMIT=20
"""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LogOutputConfig(BaseModel):
    """Single logging output configuration.

    Env vars: Not directly configurable via env (use YAML for multi-output).
    """

    format: Literal["json", "console"] = "console"
    destination: str = "stderr"  # stderr, stdout, or absolute file path
    level: LogLevel | None = None  # Inherits from parent if None

    @field_validator("destination")
    @classmethod
    def validate_destination(cls, v: str) -> str:
        if v in ("stderr", "stdout"):
            return v
        path = Path(v).expanduser()
        if not path.is_absolute():
            raise ValueError(f"File destination must be absolute path: {v}")
        return str(path)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Env vars:
        RECON__LOGGING__LEVEL: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    level: LogLevel = Field(
        default="INFO",
        description="Root log level. DEBUG logs every recall fallback and skipped edge lookup.",
    )
    outputs: list[LogOutputConfig] = Field(default_factory=lambda: [LogOutputConfig()])


class DatabaseConfig(BaseModel):
    """Database connection configuration.

    Env vars:
        RECON__DATABASE__BUSY_TIMEOUT_MS: SQLite busy timeout
    """

    busy_timeout_ms: int = Field(
        default=30000,
        description="SQLite busy timeout (ms). How long a writer waits for the lock "
        "before a promotion fails.",
    )

    @field_validator("busy_timeout_ms")
    @classmethod
    def validate_busy_timeout(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"busy_timeout_ms must be >= 0, got {v}")
        return v


class IndexConfig(BaseModel):
    """Repository walk configuration used by fingerprinting and grep checks.

    Env vars:
        RECON__INDEX__MAX_FILE_SIZE_MB: Skip files larger than this
    """

    max_file_size_mb: int = Field(
        default=10,
        description="Skip files larger than this (MB) when scanning the working tree.",
    )
    excluded_dirs: list[str] = Field(
        default_factory=list,
        description="Extra directory names skipped on top of the built-in exclusions.",
    )


class OrientConfig(BaseModel):
    """Orient payload limits and heat thresholds.

    Env vars:
        RECON__ORIENT__MAX_MODULES: Modules listed when the caller passes 0
        RECON__ORIENT__MAX_DECISIONS: Active decisions listed when the caller passes 0
        RECON__ORIENT__HEAT_WINDOW_DAYS: Commit window for heat
        RECON__ORIENT__HEAT_HOT_THRESHOLD: Touches at which a module is hot
    """

    max_modules: int = Field(default=8, ge=1)
    max_decisions: int = Field(default=5, ge=1)
    max_patterns: int | None = Field(
        default=None,
        description="Cap on active patterns. None lists all of them.",
    )
    max_knowledge_per_module: int = Field(default=5, ge=1)
    heat_window_days: int = Field(default=30, ge=1)
    heat_hot_threshold: int = Field(default=4, ge=1)
    recent_commit_scan: int = Field(
        default=20,
        ge=1,
        description="Commits walked from HEAD when collecting recent activity.",
    )
    entry_package_names: list[str] = Field(
        default_factory=lambda: ["main", "__main__", "cmd"],
    )
    entry_file_names: list[str] = Field(
        default_factory=lambda: [
            "main.go",
            "main.py",
            "__main__.py",
            "main.rs",
            "index.js",
            "index.ts",
        ],
    )


class RecallConfig(BaseModel):
    """Recall defaults.

    Env vars:
        RECON__RECALL__DEFAULT_LIMIT: Hits returned when the caller passes 0
    """

    default_limit: int = Field(default=10, ge=1)


class ReconConfig(BaseModel):
    """Root configuration for recon.

    All settings can be configured via:
    1. Environment variables: RECON__SECTION__KEY
    2. YAML config files (repo or global)
    3. Direct kwargs to load_config()
    """

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    index: IndexConfig = Field(default_factory=IndexConfig)
    orient: OrientConfig = Field(default_factory=OrientConfig)
    recall: RecallConfig = Field(default_factory=RecallConfig)
