"""Runtime configuration for the app builder."""
import logging
import os
from pathlib import Path
from typing import Mapping, Optional
from dotenv import load_dotenv
from pydantic import BaseModel

from rajai_builder.errors import ConfigurationError

logger = logging.getLogger(__name__)

CREDENTIAL_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY")

MISSING_CREDENTIAL_MESSAGE = (
    "Gemini API key is not configured. Please set the GEMINI_API_KEY (or GOOGLE_API_KEY) "
    "environment variable. Get your API key from: https://aistudio.google.com/apikey"
)


class Settings(BaseModel):
    """Configuration validated once at startup and injected, never mutated."""

    model_config = {"frozen": True}

    api_key: Optional[str] = None
    model: str = "gemini-2.5-flash"
    temperature: float = 0.7
    store_dir: Path = Path.home() / ".rajai"
    output_dir: Path = Path("./generated_apps")
    host: str = "0.0.0.0"
    port: int = 8000

    @property
    def configuration_error(self) -> Optional[str]:
        """User-facing message when the credential is missing, else None."""
        if not self.api_key:
            return MISSING_CREDENTIAL_MESSAGE
        return None

    def require_credential(self) -> str:
        """Return the credential or raise ConfigurationError."""
        if not self.api_key:
            raise ConfigurationError(MISSING_CREDENTIAL_MESSAGE)
        return self.api_key


def _load_env_files() -> None:
    # Package-local .env first, then the working directory; existing env wins.
    for env_path in (Path(__file__).parent.parent / ".env", Path.cwd() / ".env"):
        if env_path.exists():
            logger.info(f"Loading environment variables from: {env_path}")
            load_dotenv(env_path)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        environ: Mapping to read instead of os.environ. When omitted, .env files
            are loaded into the process environment first.

    Returns:
        Settings. A missing credential is not an error here; callers check
        Settings.configuration_error and surface it before any generation.
    """
    if environ is None:
        _load_env_files()
        environ = os.environ

    api_key = next((environ[name] for name in CREDENTIAL_ENV_VARS if environ.get(name)), None)
    if api_key:
        logger.info("✓ Found API key (masked for security)")
    else:
        logger.warning(f"⚠ {MISSING_CREDENTIAL_MESSAGE}")

    values = {"api_key": api_key}
    if environ.get("RAJAI_MODEL"):
        values["model"] = environ["RAJAI_MODEL"]
    if environ.get("RAJAI_TEMPERATURE"):
        values["temperature"] = float(environ["RAJAI_TEMPERATURE"])
    if environ.get("RAJAI_STORE_DIR"):
        values["store_dir"] = Path(environ["RAJAI_STORE_DIR"]).expanduser()
    if environ.get("RAJAI_OUTPUT_DIR"):
        values["output_dir"] = Path(environ["RAJAI_OUTPUT_DIR"]).expanduser()
    if environ.get("HOST"):
        values["host"] = environ["HOST"]
    if environ.get("PORT"):
        values["port"] = int(environ["PORT"])

    return Settings(**values)
