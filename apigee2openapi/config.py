"""Runtime configuration read from the environment."""

import logging
import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

from .errors import ConfigurationError

# ==============================
# DEFAULTS
# ==============================
DEFAULT_BASE_URL = "https://apigee.googleapis.com/v1"
DEFAULT_TIMEOUT = 30
DEFAULT_WORKERS = 4
DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


@dataclass(frozen=True)
class Settings:
    access_token: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    workers: int = DEFAULT_WORKERS
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """
        Build settings from environment variables

        Args:
            environ: Mapping to read instead of ``os.environ``

        Raises:
            ConfigurationError: if a numeric variable does not parse
        """
        env = os.environ if environ is None else environ
        try:
            timeout = float(env.get('APIGEE_API_TIMEOUT', DEFAULT_TIMEOUT))
            workers = int(env.get('APIGEE2OPENAPI_WORKERS', DEFAULT_WORKERS))
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

        log_level = env.get('APIGEE2OPENAPI_LOG_LEVEL', DEFAULT_LOG_LEVEL).upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ConfigurationError(f"Unknown log level: {log_level}")

        return cls(
            access_token=env.get('APIGEE_ACCESS_TOKEN') or None,
            base_url=env.get('APIGEE_API_BASE_URL', DEFAULT_BASE_URL).rstrip('/'),
            timeout=timeout,
            workers=max(1, workers),
            log_level=log_level,
        )

    def with_overrides(self, **changes) -> 'Settings':
        """Copy with the given non-None values replaced"""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    def require_token(self) -> str:
        if not self.access_token:
            raise ConfigurationError(
                'please run "export APIGEE_ACCESS_TOKEN=$(gcloud auth print-access-token)" first')
        return self.access_token


def setup_logging(level: str = DEFAULT_LOG_LEVEL):
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
