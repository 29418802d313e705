"""Service layer helpers (acme, acme-styles, configuration, backoff)."""

from .backoff import Backoff, BackoffWait
from .compositor import AcmeStylesClient, OptionalLayer, StyleLayer
from .config import BackoffSettings, ConfigStore, DaemonConfig, FilenameHandler, load_config

__all__ = [
    "Backoff",
    "BackoffWait",
    "AcmeStylesClient",
    "OptionalLayer",
    "StyleLayer",
    "BackoffSettings",
    "ConfigStore",
    "DaemonConfig",
    "FilenameHandler",
    "load_config",
]
