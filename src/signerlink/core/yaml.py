"""YAML configuration loading.

Loads client configuration files with ``yaml.safe_load`` so untrusted YAML
cannot instantiate arbitrary Python objects. Used by
[ClientConfig.from_yaml()][signerlink.nip46.configs.ClientConfig.from_yaml].

Examples:
    ```python
    from signerlink.core.yaml import load_yaml

    data = load_yaml("config/signerlink.yaml")
    ```
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import ConfigurationError


def load_yaml(config_path: str | Path) -> dict[str, Any]:
    """Load and parse a YAML configuration file.

    Args:
        config_path: Path to the YAML file (absolute or relative).

    Returns:
        Parsed configuration as a dictionary. An empty file yields ``{}``.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigurationError: If the file is not valid YAML or its top level
            is not a mapping.

    Warning:
        The returned dictionary is not schema-validated; pass it to a
        Pydantic model such as
        [ClientConfig][signerlink.nip46.configs.ClientConfig].
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {config_path} must contain a mapping")
    return data
