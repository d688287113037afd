"""
Centralized Configuration for the Campus Assessment Engine

This module provides the typed configuration used by the engine's
components. Values come from defaults, an optional config file and
environment variables, with proper type checking and validation.
"""

import os
import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class WeightPolicyName(str, Enum):
    """How weighted grades treat categories with no released grades yet"""
    RENORMALIZE = "renormalize"
    ZERO_FILL = "zero_fill"


class LoggingConfig(BaseSettings):
    """Logging configuration"""
    model_config = SettingsConfigDict(env_prefix="LOG_")

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json_output: bool = False
    file_path: Optional[str] = None

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        """Validate log level"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class APIConfig(BaseSettings):
    """API configuration"""
    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False
    user_header: str = "X-User-Id"


class AssessmentConfig(BaseSettings):
    """Assessment and attempt configuration"""
    model_config = SettingsConfigDict(env_prefix="ASSESSMENT_")

    default_time_limit_minutes: int = 20
    default_attempts: int = 2
    seconds_per_minute: float = 60.0
    staff_bypass_due_date: bool = True
    default_category: str = "quiz"

    @field_validator('seconds_per_minute')
    @classmethod
    def validate_timer_scale(cls, v):
        """The timer scale must be positive"""
        if v <= 0:
            raise ValueError(f"seconds_per_minute must be positive, got {v}")
        return v


class GradebookConfig(BaseSettings):
    """Gradebook aggregation configuration"""
    model_config = SettingsConfigDict(env_prefix="GRADEBOOK_")

    weight_tolerance: float = 0.1
    weight_policy: WeightPolicyName = WeightPolicyName.RENORMALIZE
    display_precision: int = 1

    @field_validator('weight_tolerance')
    @classmethod
    def validate_tolerance(cls, v):
        """Tolerance is expressed in percentage points"""
        if not 0 <= v < 100:
            raise ValueError(f"weight_tolerance must be between 0 and 100, got {v}")
        return v


class AppConfig(BaseModel):
    """Main application configuration"""
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    assessment: AssessmentConfig = Field(default_factory=AssessmentConfig)
    gradebook: GradebookConfig = Field(default_factory=GradebookConfig)


class ConfigLoader:
    """
    Configuration loader for the application.

    Loads configuration from:
    1. Default values
    2. Config file
    3. Environment variables (read by each section)
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the config loader.

        Args:
            config_path: Path to config file (YAML or JSON)
        """
        self.config_path = config_path or os.environ.get("CONFIG_PATH")
        self._config: Optional[AppConfig] = None

    def load(self) -> AppConfig:
        """
        Load configuration from all sources.

        Returns:
            Loaded configuration
        """
        if self._config is not None:
            return self._config

        file_config: Dict[str, Any] = {}
        if self.config_path:
            file_config = self._load_from_file(self.config_path)

        self._config = AppConfig(**file_config)
        return self._config

    def _load_from_file(self, path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            path: Path to config file

        Returns:
            Loaded configuration dictionary
        """
        path = Path(path)
        if not path.exists():
            logger.warning(f"Config file not found: {path}")
            return {}

        try:
            if path.suffix.lower() in ['.yaml', '.yml']:
                with open(path, 'r') as f:
                    return yaml.safe_load(f) or {}
            elif path.suffix.lower() == '.json':
                with open(path, 'r') as f:
                    return json.load(f)
            else:
                logger.warning(f"Unsupported config file format: {path.suffix}")
                return {}
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.error(f"Error loading config file: {e}")
            return {}


config_loader = ConfigLoader()
config = config_loader.load()


def get_config() -> AppConfig:
    """
    Get the loaded configuration.

    Returns:
        Loaded configuration
    """
    return config

