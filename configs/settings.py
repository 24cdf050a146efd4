from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv

from exceptions.exceptions import ConfigurationError


load_dotenv()


LOCAL_ENVIRONMENTS = ("local", "dev", "development")


class Settings:
    """
    Central configuration for RizzCoach.

    Values are loaded once from environment variables (with sensible defaults)
    and then exposed via typed properties.
    """

    def __init__(self) -> None:
        # Model / credential configuration
        self._api_key = (
            os.getenv("OPENAI_API_KEY") or os.getenv("GEMINI_API_KEY") or ""
        ).strip() or None
        self._base_url = os.getenv("OPENAI_BASE_URL") or None
        self._model = os.getenv("RIZZCOACH_MODEL", "gpt-4.1-mini")

        # Execution context and proxy transport
        self._environment = os.getenv("RIZZCOACH_ENV", "local").strip().lower()
        self._proxy_url = os.getenv("RIZZCOACH_PROXY_URL", "http://127.0.0.1:8000")
        self._request_timeout = float(os.getenv("RIZZCOACH_REQUEST_TIMEOUT", "60"))

        # Server + logging
        self._host = os.getenv("RIZZCOACH_HOST", "127.0.0.1")
        self._port = int(os.getenv("RIZZCOACH_PORT", "8000"))
        self._log_level = os.getenv("RIZZCOACH_LOG_LEVEL", "INFO").upper()

    # ------------------------------------------------------------------
    # Model settings
    # ------------------------------------------------------------------

    @property
    def api_key(self) -> str:
        if not self._api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY is not set. Please export it in your environment "
                "or define it in a .env file."
            )
        return self._api_key

    @property
    def has_api_key(self) -> bool:
        return bool(self._api_key)

    @property
    def base_url(self) -> Optional[str]:
        return self._base_url

    @property
    def model(self) -> str:
        return self._model

    # ------------------------------------------------------------------
    # Transport selection
    # ------------------------------------------------------------------

    @property
    def environment(self) -> str:
        return self._environment

    @property
    def is_local(self) -> bool:
        return self._environment in LOCAL_ENVIRONMENTS

    @property
    def proxy_url(self) -> str:
        return self._proxy_url.rstrip("/")

    @property
    def request_timeout(self) -> float:
        return self._request_timeout

    # ------------------------------------------------------------------
    # Server / logging
    # ------------------------------------------------------------------

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def log_level(self) -> str:
        return self._log_level


settings = Settings()
