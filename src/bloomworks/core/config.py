"""Configuration management for Bloomworks.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the BLOOMWORKS_ prefix,
allowing easy customization without code changes.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:
1. Environment variables (BLOOMWORKS_* prefix)
2. .env file in the project root
3. Default values defined in BloomworksConfig

Example .env file:
    BLOOMWORKS_OPENAI_API_KEY=sk-...
    BLOOMWORKS_SUPABASE_URL=https://xyzcompany.supabase.co
    BLOOMWORKS_SUPABASE_SERVICE_ROLE_KEY=eyJ...
    BLOOMWORKS_SUPABASE_BUCKET=flowers
    BLOOMWORKS_PER_IDENTITY_CEILING=50

Global Configuration Instance
------------------------------
A global `config` instance is created automatically at module import time.
The API layer reads it once in its lifespan hook to build the service
clients; nothing else in the pipeline touches it, so tests can pass their
own ``BloomworksConfig`` instances around freely.

Capacity Ceilings
-----------------
``global_ceiling`` and ``per_identity_ceiling`` are the defaults applied to
every theme that does not set its own.  The per-identity rejection message
is rendered from the effective value, so changing the setting changes the
text users see.

Optional CMS Publishing
-----------------------
Publishing to the external collection is enabled only when both
``cms_api_token`` and ``cms_collection_id`` are set.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BloomworksConfig(BaseSettings):
    """Main configuration for Bloomworks.

    Attributes
    ----------
    Language model:
        openai_api_key : str
            API key for chat, moderation and image requests
        chat_model : str
            Model used to rewrite messages into image prompts
        moderation_model : str
            Model used by the safety gate
        moderation_enabled : bool
            Master switch for the safety gate

    Image generation:
        image_model : str
            Image model identifier
        image_size : str
            Square output size
        image_background : Literal["transparent", "opaque", "auto"]
            Background mode sent with every request
        prompt_max_length : int
            Cap on the sanitized description (style anchor excluded)

    Storage:
        supabase_url : str
        supabase_service_role_key : str
        supabase_bucket : str
            Bucket used by themes that do not name their own

    Capacity:
        global_ceiling : int
            Maximum records per theme table
        per_identity_ceiling : int
            Maximum records per submitter identity per theme table

    CMS:
        cms_api_token, cms_collection_id, cms_base_url, cms_timeout

    Server:
        server_host, server_port, log_level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="BLOOMWORKS_",
        case_sensitive=False,
        extra="ignore",
    )

    # Language model settings
    openai_api_key: str = Field(default="", description="OpenAI API key")
    chat_model: str = Field(
        default="gpt-4o-mini",
        description="Chat model that rewrites messages into image prompts",
    )
    moderation_model: str = Field(
        default="omni-moderation-latest",
        description="Moderation model used by the safety gate",
    )
    moderation_enabled: bool = Field(
        default=True,
        description="Screen inputs/prompts through the moderation endpoint",
    )

    # Image generation settings
    image_model: str = Field(default="gpt-image-1", description="Image model identifier")
    image_size: str = Field(default="1024x1024", description="Square output resolution")
    image_background: Literal["transparent", "opaque", "auto"] = Field(
        default="transparent",
        description="Background mode for generated images",
    )
    prompt_max_length: int = Field(
        default=700,
        description="Maximum length of the model-written description",
        ge=50,
        le=4000,
    )

    # Storage settings
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_service_role_key: str = Field(default="", description="Supabase service role key")
    supabase_bucket: str = Field(default="flowers", description="Default storage bucket")

    # Capacity ceilings
    global_ceiling: int = Field(
        default=200,
        description="Maximum number of records per theme table",
        ge=1,
    )
    per_identity_ceiling: int = Field(
        default=50,
        description="Maximum number of records per submitter identity",
        ge=1,
    )

    # Optional CMS publishing
    cms_api_token: str | None = Field(default=None, description="CMS API bearer token")
    cms_collection_id: str | None = Field(default=None, description="CMS collection id")
    cms_base_url: str = Field(
        default="https://api.webflow.com/v2",
        description="Base URL of the CMS API",
    )
    cms_timeout: float = Field(default=10.0, description="CMS request timeout (seconds)", gt=0)

    # Server settings
    server_host: str = Field(default="0.0.0.0", description="Server bind address")
    server_port: int = Field(default=8000, description="Server port", ge=1024, le=65535)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Root log level for the CLI entry point",
    )

    @property
    def cms_enabled(self) -> bool:
        """True when both the CMS token and collection id are configured."""
        return bool(self.cms_api_token and self.cms_collection_id)


# Global configuration instance, loaded from BLOOMWORKS_* variables and .env.
config = BloomworksConfig()
