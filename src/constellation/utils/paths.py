from pathlib import Path

DEBUG_LOG_FILENAME = "constellation-debug.log"


def resolve_workspace(workspace: Path | str | None = None) -> Path:
    """Get the workspace directory.

    Defaults to the current working directory, like the other tools the
    CLI drives.

    Raises:
        NotADirectoryError: If the path exists but is not a directory
    """
    path = Path(workspace).expanduser() if workspace else Path.cwd()
    path = path.resolve()
    if path.exists() and not path.is_dir():
        raise NotADirectoryError(f"Workspace is not a directory: {path}")
    return path


def debug_log_path(workspace: Path) -> Path:
    return workspace / DEBUG_LOG_FILENAME
