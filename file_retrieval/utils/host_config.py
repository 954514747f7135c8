"""
Host-specific settings file selection.

Each worker host may carry its own ``<hostname>-settings.env`` next to the shared
``settings.env``. The first time a host starts, the shared file is copied so the
operator has a per-host file to tune scheduler and retry settings in.
"""

import logging
import shutil
import socket
from pathlib import Path

BASE_SETTINGS_FILE = "settings.env"


def get_hostname() -> str:
    """Get the current hostname (without domain)."""
    return socket.gethostname().split(".")[0]


def get_hostname_settings_file() -> str:
    """
    Return the env file the Settings object should read.

    Falls back to ``settings.env`` when neither file exists or the copy fails.
    """
    base_settings = Path(BASE_SETTINGS_FILE)
    try:
        hostname = get_hostname()
        host_settings = Path(f"{hostname}-settings.env")

        if host_settings.exists():
            return str(host_settings)

        if not base_settings.exists():
            return BASE_SETTINGS_FILE

        shutil.copy2(base_settings, host_settings)
        content = host_settings.read_text(encoding="utf-8")
        header = (
            f"# Host-specific file retrieval settings for: {hostname}\n"
            f"# Generated from {BASE_SETTINGS_FILE}\n\n"
        )
        host_settings.write_text(header + content, encoding="utf-8")
        logging.info(f"Created host-specific configuration: {host_settings}")
        return str(host_settings)

    except OSError as e:
        logging.error(f"Error handling host-specific settings: {e}")
        return BASE_SETTINGS_FILE


def list_all_settings_files() -> list[str]:
    """List the shared settings file and every host-specific one present."""
    settings_files = []
    if Path(BASE_SETTINGS_FILE).exists():
        settings_files.append(BASE_SETTINGS_FILE)
    settings_files.extend(str(path) for path in sorted(Path(".").glob("*-settings.env")))
    return settings_files
