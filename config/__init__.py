"""Environment configuration objects."""

from config.settings import (
    BaseConfig,
    DevelopmentConfig,
    TestingConfig,
    ProductionConfig,
    CONFIGS,
)
