import logging
from urllib.parse import quote_plus
from google.cloud import secretmanager
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def get_secret(project_id: str, secret_id: str, version_id: str = "latest") -> str:
    try:
        client = secretmanager.SecretManagerServiceClient()
        name = f"projects/{project_id}/secrets/{secret_id}/versions/{version_id}"
        response = client.access_secret_version(request={"name": name})
        return response.payload.data.decode('UTF-8')
    except Exception as e:
        logger.warning(f"Could not fetch secret {secret_id}: {e}")
        return ""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Secret Manager is only consulted when a project is configured
    PROJECT_ID: str = ""
    REGION: str = "us-central1"

    DB_HOST: str = ""
    DB_USER: str = "postgres"
    DB_PASSWORD: str = ""
    DB_NAME: str = "dailymood"
    DATABASE_URL: str = ""

    STRIPE_API_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_PREMIUM_PRICE_ID: str = ""

    LLM_MODEL: str = "gemini-1.5-flash"

    # App Config
    APP_URL: str = "http://localhost:3000"
    ALLOWED_ORIGINS: str = "http://localhost:3000"
    RATE_LIMIT_ENABLED: bool = True
    ENABLE_TRACING: bool = False
    DEBUG: bool = False

    @property
    def allowed_origins(self) -> list:
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]

    def load_secrets(self):
        if not self.PROJECT_ID:
            logger.info("PROJECT_ID not set, using environment configuration only.")
        else:
            for secret_id in ("REGION", "DB_HOST", "DB_USER", "DB_NAME", "DB_PASSWORD",
                              "STRIPE_API_KEY", "STRIPE_WEBHOOK_SECRET", "STRIPE_PREMIUM_PRICE_ID",
                              "DATABASE_URL"):
                value = get_secret(self.PROJECT_ID, secret_id)
                if value:
                    setattr(self, secret_id, value)

        if not self.DATABASE_URL:
            if self.DB_HOST and self.DB_PASSWORD:
                self.DATABASE_URL = f"postgresql://{quote_plus(self.DB_USER)}:{quote_plus(self.DB_PASSWORD)}@{self.DB_HOST}:5432/{self.DB_NAME}"
            else:
                self.DATABASE_URL = "sqlite:///./dailymood.db"


settings = Settings()
settings.load_secrets()
