"""
Configuration settings for the tool lifecycle and workflow engine.
"""

from typing import Optional
from pathlib import Path
from pydantic import BaseModel, Field, validator
from pydantic_settings import BaseSettings


class ExecutorConfig(BaseModel):
    """External process execution configuration."""
    timeout_seconds: int = Field(default=600, description="Per-command timeout in seconds")
    max_concurrent_processes: int = Field(default=5, description="Maximum concurrent external processes")
    shell: Optional[str] = Field(default="/bin/bash", description="Shell used to run commands")

    @validator('timeout_seconds', 'max_concurrent_processes')
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v


class InstallConfig(BaseModel):
    """Tool installation configuration."""
    tools_dir: Path = Field(default=Path("tools"), description="Directory git installs clone into")
    git_base_url: str = Field(default="https://github.com", description="Base URL for owner/repo clones")
    go_version_suffix: str = Field(default="@latest", description="Version suffix for go install")
    error_detail_max_chars: int = Field(default=500, description="Maximum length of a tool's error detail")


class StorageConfig(BaseModel):
    """State persistence configuration."""
    state_dir: Path = Field(default=Path("state"), description="Directory for tools, workflows and run reports")
    persist: bool = Field(default=True, description="Persist state between runs")


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Logging level")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format"
    )
    file_path: Optional[Path] = Field(default=Path("logs/secflow.log"))
    max_file_size_mb: int = Field(default=10, description="Maximum log file size in MB")
    backup_count: int = Field(default=5, description="Number of log backups to keep")


class Settings(BaseSettings):
    """Main application settings."""
    # Component configs
    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    install: InstallConfig = Field(default_factory=InstallConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "SECFLOW_"
        env_nested_delimiter = "__"
        extra = "ignore"  # Ignore extra fields from environment
