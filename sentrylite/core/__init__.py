"""
sentrylite Core

Configuration, DSN parsing and the process hub.
"""

from sentrylite.core.config import SDKSettings, load_settings
from sentrylite.core.dsn import Dsn, parse_dsn, try_parse_dsn

__all__ = [
    "SDKSettings",
    "load_settings",
    "Dsn",
    "parse_dsn",
    "try_parse_dsn",
]
