"""Path utilities for the rule dedupe engine."""

from pathlib import Path


def get_project_root() -> Path:
    """Get the project root directory.

    Returns:
        Path to the project root

    """
    return Path(__file__).parent.parent.parent


def get_config_path(filename: str = "settings.yaml") -> Path:
    """Get the path to a config file.

    Args:
        filename: Name of the config file (default: settings.yaml)

    Returns:
        Path to the config file

    """
    current = Path.cwd()

    # Look for config directory in current and parent directories
    for parent in [current] + list(current.parents):
        config_dir = parent / "config"
        if config_dir.exists() and (config_dir / filename).exists():
            return config_dir / filename

    # Fallback: the config directory shipped next to the package
    return get_project_root() / "config" / filename
