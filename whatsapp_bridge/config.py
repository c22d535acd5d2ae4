import json
from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode
from functools import lru_cache
from typing import Annotated, List


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase Configuration
    supabase_url: str = "http://localhost:54321"
    supabase_key: str = "your_supabase_anon_key"
    supabase_service_key: str = ""

    # Application Configuration
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 3001
    public_base_url: str = ""
    cors_origins: Annotated[List[str], NoDecode] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8080",
    ]

    # WhatsApp Cloud API Configuration
    whatsapp_token: str = ""
    whatsapp_phone_number_id: str = ""
    whatsapp_api_version: str = "v18.0"
    whatsapp_api_base_url: str = "https://graph.facebook.com"
    whatsapp_request_timeout: float = 10.0

    # Webhook Configuration
    whatsapp_verify_token: str = ""
    webhook_secret: str = ""
    whatsapp_require_signature: bool = False

    # Media Uploads
    upload_path: str = "./uploads"
    max_file_size: int = 16 * 1024 * 1024

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, value):
        """Accept a JSON array or a comma-separated list of origins."""
        if isinstance(value, str):
            value = value.strip()
            if value.startswith("["):
                return json.loads(value)
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    class Config:
        env_file = None
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
