"""
JSON-based project configuration for panel_dxf.

Configuration is looked up in this order (first match wins):
1. Explicit config file path (CLI --config)
2. .panel_dxf.json next to the spreadsheet being converted
3. .panel_dxf.json in the current directory
4. ~/.panel_dxf.json

Example .panel_dxf.json:
{
    "columns": {
        "width": ["Width", "W"],
        "length": ["Length", "L"]
    },
    "drawing": {
        "layer_name": "Panels",
        "layer_color": 1
    },
    "naming": {
        "thickness_suffix": "mm",
        "quantity_suffix": "pcs"
    },
    "output": {
        "collision_policy": "overwrite",
        "create_missing_dirs": true
    }
}
"""

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".panel_dxf.json"

COLLISION_SUFFIX = "suffix"
COLLISION_OVERWRITE = "overwrite"
COLLISION_POLICIES = (COLLISION_SUFFIX, COLLISION_OVERWRITE)


@dataclass
class ColumnsConfig:
    """Spreadsheet header labels accepted for each dimension field.

    Labels are matched case-insensitively after trimming whitespace.
    """
    width: List[str] = field(default_factory=lambda: ["Width", "Ширина"])
    length: List[str] = field(default_factory=lambda: ["Length", "Длина"])
    thickness: List[str] = field(default_factory=lambda: ["Thickness", "Толщина"])
    quantity: List[str] = field(default_factory=lambda: ["Quantity", "Qty", "Количество"])

    def label_map(self) -> Dict[str, str]:
        """Map normalized header label -> field identity."""
        mapping: Dict[str, str] = {}
        for f in fields(self):
            for label in getattr(self, f.name):
                mapping[str(label).strip().casefold()] = f.name
        return mapping


@dataclass
class DrawingConfig:
    """DXF document settings."""
    dxf_version: str = "R2010"
    layer_name: str = "Rectangles"
    layer_color: int = 3  # ACI green
    linetype: str = "CONTINUOUS"
    units: str = "mm"  # header metadata only, coordinates are never scaled


@dataclass
class NamingConfig:
    """Output file name parts."""
    thickness_suffix: str = "mm"
    quantity_suffix: str = "pcs"
    extension: str = ".dxf"


@dataclass
class OutputConfig:
    """Batch output behaviour."""
    collision_policy: str = COLLISION_SUFFIX
    create_missing_dirs: bool = False
    encoding: str = "utf-8"


_SECTIONS = {
    'columns': ColumnsConfig,
    'drawing': DrawingConfig,
    'naming': NamingConfig,
    'output': OutputConfig,
}


@dataclass
class ProjectConfig:
    """Complete project configuration."""
    columns: ColumnsConfig = field(default_factory=ColumnsConfig)
    drawing: DrawingConfig = field(default_factory=DrawingConfig)
    naming: NamingConfig = field(default_factory=NamingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False)

    def save(self, path: Union[str, Path]) -> None:
        """Save configuration to a JSON file."""
        path = Path(path)
        path.write_text(self.to_json(), encoding='utf-8')
        logger.info("Configuration saved to %s", path)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProjectConfig':
        """Create configuration from a dictionary.

        Unknown sections and keys are ignored; keys starting with "_" are
        treated as comments.

        Raises:
            ValueError: If output.collision_policy is not a known policy
        """
        config = cls()

        for section_name in _SECTIONS:
            section_data = data.get(section_name)
            if not isinstance(section_data, dict):
                continue
            section = getattr(config, section_name)
            for key, value in section_data.items():
                if key.startswith('_'):
                    continue
                if hasattr(section, key):
                    setattr(section, key, value)
                else:
                    logger.warning("Unknown config key ignored: %s.%s", section_name, key)

        if config.output.collision_policy not in COLLISION_POLICIES:
            raise ValueError(
                f"Unknown collision_policy {config.output.collision_policy!r}, "
                f"expected one of {COLLISION_POLICIES}"
            )

        return config

    @classmethod
    def from_json(cls, json_str: str) -> 'ProjectConfig':
        """Create configuration from a JSON string."""
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def load(cls, path: Union[str, Path]) -> 'ProjectConfig':
        """Load configuration from a JSON file.

        Raises:
            FileNotFoundError: If file doesn't exist
            json.JSONDecodeError: If file is not valid JSON
        """
        path = Path(path)
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        logger.info("Configuration loaded from %s", path)
        return cls.from_dict(data)


def find_config_file(
    spreadsheet_path: Optional[Union[str, Path]] = None,
    explicit_config: Optional[Union[str, Path]] = None,
) -> Optional[Path]:
    """Find a configuration file using the search hierarchy.

    Args:
        spreadsheet_path: Spreadsheet being converted, if any
        explicit_config: Explicitly specified config path

    Returns:
        Path to config file if found, None otherwise
    """
    if explicit_config:
        explicit = Path(explicit_config)
        if explicit.exists():
            return explicit
        logger.warning("Explicit config not found: %s", explicit)

    candidates = []
    if spreadsheet_path:
        candidates.append(Path(spreadsheet_path).parent / CONFIG_FILENAME)
    candidates.append(Path.cwd() / CONFIG_FILENAME)
    candidates.append(Path.home() / CONFIG_FILENAME)

    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def load_config(
    spreadsheet_path: Optional[Union[str, Path]] = None,
    explicit_config: Optional[Union[str, Path]] = None,
) -> ProjectConfig:
    """Load configuration, falling back to defaults.

    A config file that cannot be read or parsed is logged and ignored.
    """
    config_path = find_config_file(spreadsheet_path, explicit_config)

    if config_path:
        try:
            return ProjectConfig.load(config_path)
        except (json.JSONDecodeError, OSError, ValueError) as e:
            logger.error("Failed to load config %s: %s", config_path, e)

    return ProjectConfig()


def create_sample_config(path: Union[str, Path] = CONFIG_FILENAME) -> Path:
    """Write a commented sample configuration file.

    Returns:
        Path of the written file
    """
    sample: Dict[str, Any] = {
        "_comment": "panel_dxf configuration",
        "_version": "1.0",
    }
    defaults = ProjectConfig().to_dict()
    comments = {
        "columns": "Spreadsheet header labels accepted for each field",
        "drawing": "DXF version and the layer holding the rectangle",
        "naming": "Suffixes used in generated file names",
        "output": "collision_policy: 'suffix' or 'overwrite'",
    }
    for section_name, values in defaults.items():
        sample[section_name] = {"_comment": comments[section_name], **values}

    path = Path(path)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(sample, f, indent=2, ensure_ascii=False)

    logger.info("Sample configuration created: %s", path)
    return path
