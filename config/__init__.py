"""
BillScan settings.

``settings.yaml`` beside this module holds upload limits, preprocessing
steps, OCR parameters, pipeline sizing, export labels and API options.
Another file can be selected with ``--config`` on the command line or the
``BILLSCAN_CONFIG`` environment variable.
"""

import os
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

CONFIG_ENV_VAR = "BILLSCAN_CONFIG"
DEFAULT_CONFIG_PATH = Path(__file__).parent / "settings.yaml"


class ConfigurationManager:
    """
    Process-wide settings loaded once from YAML.

    Relative entries of the ``paths`` section are anchored at the project
    root (the parent of the directory holding the settings file).

    Example:
        >>> ConfigurationManager().get("upload.max_size_bytes")
        10485760
    """

    _instance: Optional['ConfigurationManager'] = None

    def __new__(cls, config_path: Optional[str] = None) -> 'ConfigurationManager':
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._settings = None
            cls._instance = instance
        return cls._instance

    def __init__(self, config_path: Optional[str] = None) -> None:
        if self._settings is not None:
            return

        chosen = config_path or os.environ.get(CONFIG_ENV_VAR)
        self.config_path = Path(chosen) if chosen else DEFAULT_CONFIG_PATH
        self._settings = self._read(self.config_path)

    @staticmethod
    def _read(path: Path) -> Dict[str, Any]:
        """
        Parse ``path`` and absolutize its ``paths`` entries.

        Raises:
            FileNotFoundError: The file does not exist.
            yaml.YAMLError: The file is not valid YAML.
        """
        if not path.is_file():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        settings = yaml.safe_load(path.read_text(encoding='utf-8')) or {}

        project_root = path.resolve().parent.parent
        paths = settings.get('paths') or {}
        for name, location in paths.items():
            if location and not Path(location).is_absolute():
                paths[name] = str(project_root / location)
        return settings

    def get(self, key: str, default: Any = None) -> Any:
        """Look up a dotted key such as ``"ocr.tesseract.lang"``."""
        node: Any = self._settings
        for part in key.split('.'):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    @classmethod
    def reset(cls) -> None:
        """Forget the loaded settings; the next access reads the file again."""
        cls._instance = None


def get_config(key: str, default: Any = None) -> Any:
    return ConfigurationManager().get(key, default)


__all__ = ['ConfigurationManager', 'get_config', 'CONFIG_ENV_VAR']
