"""Configuration for devotion.

Key Components:
    - GlobalConfig: API keys and the projects database (per user)
    - LocalConfig: Tickets database and development branch (per working copy)
    - ConfigStore: JSON persistence for either of them

Example:
    >>> from devotion.config import global_store
    >>> config = global_store().read()
"""

from devotion.config.settings import (
    ConfigStore,
    GlobalConfig,
    LocalConfig,
    global_store,
    local_store,
    mask_secret,
)

__all__ = [
    "ConfigStore",
    "GlobalConfig",
    "LocalConfig",
    "global_store",
    "local_store",
    "mask_secret",
]
