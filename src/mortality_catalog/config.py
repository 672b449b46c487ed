"""
mortality_catalog/config.py - Catalog Settings

Settings are resolved in this order (later wins):
1. Defaults below
2. Optional JSON settings file
3. MORTALITY_CATALOG_* environment variables
4. Explicit keyword overrides (CLI flags)

License: MIT
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel, Field, field_validator

from .search import DEFAULT_THRESHOLD
from .viewport import LOAD_BATCH, SCROLL_THRESHOLD_PX

logger = logging.getLogger(__name__)


ENV_PREFIX = "MORTALITY_CATALOG_"


class CatalogSettings(BaseModel):
    """Complete runtime configuration."""
    source: str = Field("json", description="Directory of converted JSON documents or site URL")
    output_dir: str = Field(".", description="Directory that receives exports")

    load_batch: int = Field(LOAD_BATCH, ge=1, description="Rows revealed per scroll step")
    scroll_threshold_px: float = Field(SCROLL_THRESHOLD_PX, ge=0,
                                       description="Distance from the list bottom that reveals more")
    search_threshold: float = Field(DEFAULT_THRESHOLD, ge=0, le=1,
                                    description="Maximum fuzzy score that still matches")

    request_timeout: float = Field(30.0, gt=0, description="HTTP timeout in seconds")
    max_retries: int = Field(3, ge=0, description="HTTP retries for transient failures")

    log_level: str = "INFO"

    @field_validator('log_level')
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            raise ValueError(f"Unknown log level: {value}")
        return level


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    overrides = {}
    for name in CatalogSettings.model_fields:
        key = ENV_PREFIX + name.upper()
        if key in environ:
            overrides[name] = environ[key]
    return overrides


def load_settings(path: Optional[Union[str, Path]] = None,
                  environ: Optional[Mapping[str, str]] = None,
                  **overrides: Any) -> CatalogSettings:
    """
    Build settings from file, environment and overrides.

    None-valued overrides are ignored so unset CLI flags fall through.

    Raises:
        pydantic.ValidationError: a value is out of range
        FileNotFoundError: the settings file does not exist
    """
    values: Dict[str, Any] = {}

    if path is not None:
        with open(path) as f:
            values.update(json.load(f))
        logger.debug(f"Settings file loaded: {path}")

    values.update(_env_overrides(os.environ if environ is None else environ))
    values.update({k: v for k, v in overrides.items() if v is not None})

    return CatalogSettings(**values)
