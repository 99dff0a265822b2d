"""
execassist Common Module

Shared configuration and suggestion schemas.
"""

from .config import ExecAssistConfig, load_config, save_config, ensure_directories

__all__ = [
    "ExecAssistConfig",
    "load_config",
    "save_config",
    "ensure_directories",
]
