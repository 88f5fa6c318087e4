"""Configuration management: immutable settings models and TOML loading.

Usage:
    >>> from schemagen.config import load_config, Configuration
"""

from schemagen.config.loader import load_config, parse_config
from schemagen.config.models import (
    Configuration,
    ErrorHandlingSettings,
    HistorySettings,
    IntrospectionSettings,
    OutputSettings,
    PackageSettings,
    PerformanceSettings,
    RelationshipSettings,
    RollbackSettings,
    SourceProfile,
    TemplateSettings,
    TypeMappingSettings,
)

__all__ = [
    "load_config",
    "parse_config",
    "Configuration",
    "SourceProfile",
    "IntrospectionSettings",
    "TypeMappingSettings",
    "RelationshipSettings",
    "PackageSettings",
    "RollbackSettings",
    "ErrorHandlingSettings",
    "PerformanceSettings",
    "TemplateSettings",
    "HistorySettings",
    "OutputSettings",
]
