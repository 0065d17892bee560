from .log import configure_logging
from .paths import debug_log_path, resolve_workspace

__all__ = ["configure_logging", "debug_log_path", "resolve_workspace"]
