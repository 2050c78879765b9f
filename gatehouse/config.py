"""
Library configuration.

Loads settings from environment variables (GATEHOUSE_*) with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Authorization settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_prefix="GATEHOUSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = False

    # ==========================================================================
    # Guards
    # ==========================================================================

    # Guard used for roles/permissions created or looked up without one
    default_guard: str = "web"

    # Actor class name -> guard names, first entry is that type's default.
    # From env as JSON: GATEHOUSE_GUARDS='{"User": ["web", "api"]}'
    guards: dict[str, list[str]] = {}

    # ==========================================================================
    # Auth groups
    # ==========================================================================

    actor_collection: str = "users"
    auth_group_owner_role: str = "Owner"
    auth_group_user_role: str = "User"

    # ==========================================================================
    # Resolution cache
    # ==========================================================================

    cache_enabled: bool = True

    # ==========================================================================
    # Seeding
    # ==========================================================================

    # YAML file with permissions/roles/groups to create at startup
    permissions_file: str = ""

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
