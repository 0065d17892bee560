"""CLI command modules.

- apply: Apply the workspace configuration to the cluster
"""

from .apply import apply_command

__all__ = ["apply_command"]
