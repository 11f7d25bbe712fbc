"""Configuration primitives for the dispatch runtime."""

from .settings import DispatchSettings, get_settings

__all__ = ["DispatchSettings", "get_settings"]
