from functools import lru_cache

from pydantic_settings import BaseSettings

DEFAULT_ENDPOINT = "https://track.atom-data.io/"
SDK_TYPE = "python"
SDK_VERSION = "1.0.0"


class ClientSettings(BaseSettings):
    ENDPOINT: str = DEFAULT_ENDPOINT
    AUTH: str = ""
    TIMEOUT: float = 30.0

    @property
    def endpoint(self) -> str:
        return self.ENDPOINT

    @property
    def auth(self) -> str:
        return self.AUTH

    @property
    def timeout(self) -> float:
        return self.TIMEOUT

    @property
    def headers(self) -> dict[str, str]:
        return {
            "x-ingest-sdk-type": SDK_TYPE,
            "x-ingest-sdk-version": SDK_VERSION,
        }

    class Config:
        env_prefix = "INGEST_"
        env_file = ".env"
        extra = "ignore"
        case_sensitive = False


@lru_cache()
def get_settings() -> ClientSettings:
    return ClientSettings()
