"""
Settings for apk-unpinner.

Values come from the built-in defaults, then an optional YAML file, then
environment variables (a ``.env`` file in the working directory is loaded
first).
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)

CONFIG_FILE = "apk-unpinner.yml"

APKTOOL_URL = "https://api.github.com/repos/iBotPeaches/Apktool/releases/latest"
UBER_APK_SIGNER_URL = "https://api.github.com/repos/patrickfav/uber-apk-signer/releases/latest"

LINE_ENDINGS = ("auto", "lf", "crlf")

DEFAULTS = {
    "java": "java",
    "tools_dir": str(Path.home() / ".apk-unpinner" / "tools"),
    "apktool": None,
    "signer": None,
    "apktool_release_url": APKTOOL_URL,
    "signer_release_url": UBER_APK_SIGNER_URL,
    "jobs": None,
    "line_endings": "auto",
}

ENV_VARS = {
    "UNPINNER_JAVA": "java",
    "UNPINNER_TOOLS_DIR": "tools_dir",
    "UNPINNER_APKTOOL": "apktool",
    "UNPINNER_SIGNER": "signer",
    "UNPINNER_JOBS": "jobs",
    "UNPINNER_LINE_ENDINGS": "line_endings",
}


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Build the effective configuration, raises ValueError on bad values."""
    load_dotenv(find_dotenv(usecwd=True))
    config = dict(DEFAULTS)

    if path is None and os.path.exists(CONFIG_FILE):
        path = CONFIG_FILE
    if path is not None:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Invalid config file {path}: expected a mapping at the top level.")
        unknown = set(data) - set(DEFAULTS)
        if unknown:
            raise ValueError(f"Unknown config keys in {path}: {', '.join(sorted(unknown))}")
        config.update(data)
        logger.debug(f"Loaded config from {path}")

    for env_name, key in ENV_VARS.items():
        value = os.getenv(env_name)
        if value:
            config[key] = value

    return validate_config(config)


def validate_config(config: Dict[str, Any]) -> Dict[str, Any]:
    jobs = config.get("jobs")
    if jobs is not None:
        try:
            jobs = int(jobs)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid jobs value: {jobs!r}. Ensure it is an integer.")
        if jobs < 1:
            raise ValueError(f"Invalid jobs value: {jobs}. It must be at least 1.")
        config["jobs"] = jobs

    line_endings = str(config.get("line_endings", "auto")).lower()
    if line_endings not in LINE_ENDINGS:
        raise ValueError(f"Invalid line_endings value: {line_endings!r}. Use one of {', '.join(LINE_ENDINGS)}.")
    config["line_endings"] = line_endings

    return config


def use_crlf(config: Dict[str, Any]) -> bool:
    """Whether smali files should be treated as CRLF, resolving ``auto`` from the host."""
    line_endings = config.get("line_endings", "auto")
    if line_endings == "auto":
        return os.name == 'nt'
    return line_endings == "crlf"
