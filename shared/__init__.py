"""
Declass Shared Module
=====================

Settings, structured logging and console output shared by the Declass
library and its command-line front end.
"""

from shared.config import DeclassConfig, get_config

__all__ = ["DeclassConfig", "get_config"]
