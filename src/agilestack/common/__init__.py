from .logging_setup import setup_logging, get_logger
from .config import load_config, get_config, ConfigurationManager, CoreSettings
from .utils import now_iso, jittered_backoff, parse_bool, split_csv


__all__ = [
    "setup_logging", "get_logger", "now_iso", "jittered_backoff",
    "parse_bool", "split_csv",
    "load_config", "get_config", "ConfigurationManager", "CoreSettings",
]
