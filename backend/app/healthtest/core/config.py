from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="HT_", env_file=".env", extra="ignore")

    ENV: str = Field(default="dev")

    # Completion backend (OpenAI-compatible chat completions)
    AI_PROVIDER: str = Field(default="openai")
    AI_BASE_URL: str | None = Field(default=None)
    AI_API_KEY: str = Field(default="")
    AI_MODEL: str = Field(default="gpt-4o-mini")
    AI_TEMPERATURE: float = Field(default=0.2, ge=0.0, le=2.0)
    AI_MAX_TOKENS: int = Field(default=8192, ge=1)
    AI_TIMEOUT_S: float = Field(default=120.0, gt=0)
    # json_schema | json_object | none; unset picks the provider default
    AI_RESPONSE_FORMAT: str | None = Field(default=None)

    # Generation behaviour
    ORPHAN_POLICY: str = Field(default="reject")
    PACING_S: float = Field(default=0.0, ge=0.0)

    LOG_DIR: str = Field(default="logs")
    LOG_LEVEL: str = Field(default="INFO")


settings = Settings()
