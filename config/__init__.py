"""Configuration package for the repository interview engine."""
from .routes import AppConfig, LlmRoute, load_app_registry, load_config, resolve_registry, resolve_route
from .settings import Settings, settings

__all__ = [
    "AppConfig",
    "LlmRoute",
    "load_app_registry",
    "load_config",
    "resolve_registry",
    "resolve_route",
    "Settings",
    "settings",
]
