"""Configuration for the WhatsApp AI bridge: loads the environment variables
(OpenAI, Supabase, WhatsApp session, HTTP port) via Pydantic-Settings."""
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Without these the system refuses to start.
REQUIRED_VARIABLES = ("OPENAI_API_KEY", "SUPABASE_URL", "SUPABASE_KEY")


class Settings(BaseSettings):
    """Holds every value the bridge needs at runtime (API keys, session
    storage, WAHA endpoint, ports)."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    host: str = Field("0.0.0.0", alias="HOST")
    port: int = Field(8080, alias="PORT")

    openai_api_key: str = Field("", alias="OPENAI_API_KEY")
    openai_model: str = Field("gpt-4o-mini", alias="OPENAI_MODEL")
    ai_allow_writes: bool = Field(False, alias="AI_ALLOW_WRITES")

    supabase_url: str = Field("", alias="SUPABASE_URL")
    supabase_key: str = Field("", alias="SUPABASE_KEY")
    supabase_health_table: str = Field("health_check", alias="SUPABASE_HEALTH_TABLE")

    whatsapp_session_path: str = Field("./whatsapp-session", alias="WHATSAPP_SESSION_PATH")
    whatsapp_client_id: str = Field("whatsapp-ai-bot", alias="WHATSAPP_CLIENT_ID")
    whatsapp_ready_timeout: float = Field(45.0, alias="WHATSAPP_READY_TIMEOUT")
    whatsapp_webhook_url: str = Field(
        "http://localhost:8080/webhook/whatsapp", alias="WHATSAPP_WEBHOOK_URL"
    )

    # WAHA (WhatsApp HTTP API) drives the WhatsApp Web session for us.
    waha_url: str = Field("http://localhost:3000", alias="WAHA_URL")
    waha_api_key: str = Field("", alias="WAHA_API_KEY")
    waha_webhook_hmac_key: str = Field("", alias="WAHA_WEBHOOK_HMAC_KEY")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_file: str = Field("whatsapp_ai.log", alias="LOG_FILE")

    def missing_required(self) -> List[str]:
        """Names of required variables that are unset or empty."""
        values = {
            "OPENAI_API_KEY": self.openai_api_key,
            "SUPABASE_URL": self.supabase_url,
            "SUPABASE_KEY": self.supabase_key,
        }
        return [name for name in REQUIRED_VARIABLES if not values[name]]


settings = Settings()
