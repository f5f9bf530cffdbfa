"""Configuration management for the Odoo cost editor."""

from pydantic_settings import BaseSettings

from .odoo.exceptions import OdooConfigurationError

# Environment variables the Odoo client cannot run without
REQUIRED_ODOO_SETTINGS = {
    "url": ("odoo_url", "ODOO_URL"),
    "db": ("odoo_db", "ODOO_DB"),
    "user": ("odoo_user", "ODOO_USER"),
    "api_key": ("odoo_api_key", "ODOO_API_KEY"),
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Odoo connection
    odoo_url: str | None = None
    odoo_db: str | None = None
    odoo_user: str | None = None
    odoo_api_key: str | None = None
    odoo_timeout: float = 30.0

    # Batch cost updates
    batch_size: int = 10
    batch_delay: float = 0.1  # seconds between batches
    batch_concurrency: int = 1

    # HTTP Server
    http_host: str = "0.0.0.0"
    http_port: int = 8080

    # Development
    debug: bool = False
    log_level: str = "INFO"

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
    }

    def odoo_connection(self) -> dict[str, str]:
        """
        Return the Odoo connection parameters.

        Raises:
            OdooConfigurationError: naming every missing environment variable
        """
        connection = {}
        missing = []
        for key, (attribute, env_var) in REQUIRED_ODOO_SETTINGS.items():
            value = getattr(self, attribute)
            if not value:
                missing.append(env_var)
            connection[key] = value

        if missing:
            raise OdooConfigurationError(
                f"Missing required Odoo configuration: {', '.join(missing)}",
                missing=missing,
            )
        return connection

    @property
    def is_odoo_configured(self) -> bool:
        """Check if all Odoo connection variables are set."""
        return all(getattr(self, attribute) for attribute, _ in REQUIRED_ODOO_SETTINGS.values())
