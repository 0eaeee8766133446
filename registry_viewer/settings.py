from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GeneralConfig(BaseSettings):
    PUBLIC_API_URL: str = "http://localhost:8080"
    SENTRY_DSN: str = ""
    SENTRY_ENVIRONMENT: str = ""


class RegistryConfig(BaseSettings):
    REGISTRY_URL: str = "http://localhost:5000"
    REGISTRY_PROXY_PREFIX: str = "/api/proxy"

    REGISTRY_MAX_RETRIES: int = 3
    REGISTRY_NOT_MODIFIED_RETRY_DELAY: float = 1.0
    REGISTRY_REQUEST_DEADLINE: float = 60.0
    """Ceiling in seconds across all attempts of one registry fetch.
    Set to 0 to disable.
    """

    REGISTRY_CONNECT_TIMEOUT: float = 10.0
    REGISTRY_READ_TIMEOUT: float = 60.0

    @field_validator("REGISTRY_URL")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class Settings(
    GeneralConfig,
    RegistryConfig,
    BaseSettings,
):
    model_config = SettingsConfigDict(
        env_file=(".env", ".env.prod", ".env.test"),
        extra="allow",
    )


settings = Settings()
