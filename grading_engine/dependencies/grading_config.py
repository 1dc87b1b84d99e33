"""Dependency providing the institution's grading configuration."""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from grading_engine.config import settings
from grading_engine.schemas.grading import GradingConfig

logger = logging.getLogger(__name__)


@lru_cache
def get_grading_config() -> GradingConfig:
    """
    Load the grading configuration once.

    Reads GRADING_GRADING_CONFIG_PATH when set, otherwise builds the defaults from
    settings. Invalid files raise ConfigurationError at load time.
    """
    if settings.grading_config_path:
        logger.info("Loading grading configuration from %s", settings.grading_config_path)
        return GradingConfig.load(settings.grading_config_path)
    return GradingConfig.from_settings(settings)


GradingConfigDep = Annotated[GradingConfig, Depends(get_grading_config)]
