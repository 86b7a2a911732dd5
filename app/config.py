from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"

V1_BASE_URL = "https://rest.gohighlevel.com/v1"
V2_BASE_URL = "https://services.leadconnectorhq.com"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # GoHighLevel credentials
    GHL_API_KEY: str = ""
    GHL_LOCATION_ID: str = ""

    # =================================================================
    # GHL API SETTINGS - v1 and v2 are never mixed within one deployment
    # =================================================================
    GHL_API_GENERATION: str = "v2"
    GHL_BASE_URL: str | None = None
    GHL_API_VERSION: str = "2021-07-28"
    GHL_REQUEST_TIMEOUT: float = 15.0
    GHL_PAGE_SIZE: int = 100

    # Display names shown in the dashboard header
    AGENCY_NAME: str | None = None
    CLIENT_NAME: str | None = None

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def api_generation(self) -> str:
        """Normalized protocol generation ("v1" or "v2")."""
        generation = self.GHL_API_GENERATION.strip().lower()
        if generation not in ("v1", "v2"):
            raise ValueError(f"Unsupported GHL_API_GENERATION: {self.GHL_API_GENERATION!r}")
        return generation

    def base_url(self) -> str:
        """Get the API base URL with a per-generation fallback."""
        if self.GHL_BASE_URL:
            return self.GHL_BASE_URL.rstrip("/")
        return V1_BASE_URL if self.api_generation() == "v1" else V2_BASE_URL

    def get_client_config(self) -> dict:
        """
        Get HTTP client configuration for the CRM API.
        v2 deployments additionally send the fixed Version header.
        """
        headers = {
            "Authorization": f"Bearer {self.GHL_API_KEY}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.api_generation() == "v2":
            headers["Version"] = self.GHL_API_VERSION

        return {
            "base_url": self.base_url(),
            "headers": headers,
            "timeout": self.GHL_REQUEST_TIMEOUT,
        }


settings = Settings()
