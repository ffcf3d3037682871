import yaml
from pathlib import Path
from typing import Any, Dict, Optional


CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"


def load_raw_config(name: str, config_dir: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load raw yaml configuration without parsing into dataclasses.
    """
    path = Path(config_dir or CONFIG_DIR) / f"{name}.yaml"
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def create_config(name: str, cls, config_dir: Optional[Path] = None):
    """
    Convert a YAML config into a typed dataclass.
    Example:
        params = create_config("dasp", DaspParameters)
    """
    raw = load_raw_config(name, config_dir)
    return cls(**raw)
