"""
Application settings management.

Settings are loaded from environment variables with .env file support.
All configuration is validated using Pydantic.
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator, ValidationInfo
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment.

    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # ==========================================================================
    # Paths
    # ==========================================================================

    config_dir: Path = Field(
        default=Path("config"),
        description="Directory containing YAML configuration files",
    )
    data_dir: Path = Field(
        default=Path("data"), description="Directory for database and other data files"
    )

    # ==========================================================================
    # Database
    # ==========================================================================

    database_path: Path = Field(
        default=Path("data/specwizard.db"), description="Path to SQLite database file"
    )

    # ==========================================================================
    # Text Generation Providers
    # ==========================================================================
    #
    # The conversation talks to one primary provider and retries once against
    # the fallback provider. Defaults are defined in specwizard/llm/client.py.

    llm_primary_provider: str = Field(
        default="anthropic", description="Provider tried first for every turn"
    )
    llm_fallback_provider: Optional[str] = Field(
        default="openai",
        description="Provider tried when the primary fails (None disables fallback)",
    )

    # API Keys (required for providers you use)
    anthropic_api_key: Optional[str] = Field(
        default=None, description="Anthropic API key"
    )
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI API key")

    # ==========================================================================
    # Client
    # ==========================================================================

    offline_queue_dir: Path = Field(
        default=Path("data/offline"),
        description="Directory used as local storage for queued offline messages",
    )

    # ==========================================================================
    # Server Configuration
    # ==========================================================================

    host: str = Field(default="127.0.0.1", description="Server host address")
    port: int = Field(default=8000, ge=1, le=65535, description="Server port")
    debug: bool = Field(default=False, description="Enable debug mode")


# ============================================================================
# Wizard Configuration (from YAML)
# ============================================================================


class ConversationConfig(BaseModel):
    """Conversation stage and context window configuration."""

    min_messages_for_completion: int = Field(
        default=20,
        ge=0,
        description="Messages required before the conversation may reach completion",
    )
    history_window: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Recent messages passed verbatim to the text generator",
    )
    discovery_missing_threshold: int = Field(
        default=3,
        ge=0,
        description="More missing sections than this keeps the conversation in discovery",
    )


class CompletenessConfig(BaseModel):
    """Complexity tier boundaries for the completeness tracker."""

    simple_max_score: float = Field(default=5.0, ge=0)
    medium_max_score: float = Field(default=15.0, ge=0)

    @field_validator("medium_max_score")
    @classmethod
    def medium_above_simple(cls, v: float, info: ValidationInfo) -> float:
        """Reject tier boundaries that would make the medium tier empty."""
        simple = info.data.get("simple_max_score")
        if simple is not None and v < simple:
            raise ValueError("medium_max_score must be >= simple_max_score")
        return v


class RateLimitConfig(BaseModel):
    """Sliding-window limiter shared by all sessions."""

    max_requests_per_minute: int = Field(default=60, ge=1)
    window_seconds: float = Field(default=60.0, gt=0)


class MagicLinkConfig(BaseModel):
    """Recovery token configuration."""

    token_bytes: int = Field(
        default=16, ge=16, le=64, description="Random bytes per token (16 = 128 bit)"
    )


class WizardConfig(BaseModel):
    """
    Complete wizard configuration loaded from wizard_config.yaml.

    Holds the tunables of the state engine that would otherwise be
    hardcoded across the services.
    """

    conversation: ConversationConfig = Field(default_factory=ConversationConfig)
    completeness: CompletenessConfig = Field(default_factory=CompletenessConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    magic_link: MagicLinkConfig = Field(default_factory=MagicLinkConfig)


def load_wizard_config(config_path: Optional[Path] = None) -> WizardConfig:
    """
    Load wizard configuration from YAML file.

    Args:
        config_path: Path to wizard_config.yaml. If None, uses default path.

    Returns:
        WizardConfig with validated settings

    Raises:
        ValueError: If config validation fails
    """
    if config_path is None:
        # Default path: config/wizard_config.yaml relative to project root
        current = Path(__file__).resolve().parent.parent.parent
        check_path = current / "config" / "wizard_config.yaml"
        if check_path.exists():
            config_path = check_path
        else:
            cwd_config = Path.cwd() / "config" / "wizard_config.yaml"
            if not cwd_config.exists():
                return WizardConfig()
            config_path = cwd_config

    config_path = Path(config_path).resolve()

    if not config_path.exists():
        return WizardConfig()

    with open(str(config_path)) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        return WizardConfig()

    return WizardConfig(**config_data)


# Global settings instance
settings = Settings()

# Global wizard config instance
wizard_config = load_wizard_config()
