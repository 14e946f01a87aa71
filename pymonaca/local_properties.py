"""Per-project metadata: the ``.monaca/local_properties.json`` link and config.xml."""

import json
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .exceptions import MonacaConfigError, MonacaIOError
from .utils import LOCAL_PROPERTIES_PATH, local_path_for

logger = logging.getLogger(__name__)


def properties_file(project_dir: Path) -> Path:
    """Location of the local properties file inside a project."""
    return local_path_for(project_dir, LOCAL_PROPERTIES_PATH)


def _load(project_dir: Path) -> dict[str, Any]:
    path = properties_file(project_dir)
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8") or "{}")
    except (OSError, ValueError) as e:
        raise MonacaIOError(f"Failed to read {path}: {e}") from e
    return data if isinstance(data, dict) else {}


def get_property(project_dir: Path, key: str) -> Optional[Any]:
    """Read a single local property, or None when unset."""
    return _load(project_dir).get(key)


def set_property(project_dir: Path, key: str, value: Any) -> Any:
    """Write a local property, creating ``.monaca/`` when needed."""
    path = properties_file(project_dir)
    data = _load(project_dir)
    data[key] = value
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data), encoding="utf-8")
    except OSError as e:
        raise MonacaIOError(f"Failed to write {path}: {e}") from e
    logger.debug("Set local property %s in %s", key, project_dir)
    return value


def get_project_id(project_dir: Path) -> str:
    """Return the linked Monaca project id.

    Raises:
        MonacaConfigError: If the directory is not linked to a project
    """
    project_id = get_property(project_dir, "project_id")
    if not project_id:
        raise MonacaConfigError(
            f"{project_dir} is not linked to a Monaca project "
            "(missing project_id in .monaca/local_properties.json)"
        )
    return str(project_id)


def set_project_id(project_dir: Path, project_id: str) -> str:
    return set_property(project_dir, "project_id", project_id)


# Cordova config files, in the order they are looked up
CONFIG_XML_CANDIDATES = ("config.xml", "config.ios.xml", "config.android.xml")

UNDEFINED_PROJECT_NAME = "Undefined Project Name"
NO_DESCRIPTION = "No description"


@dataclass
class ProjectInfo:
    """Name and description of a linked local project."""

    name: str
    description: str
    directory: Path
    project_id: str


def _widget_text(root: ET.Element, tag: str) -> Optional[str]:
    # Matches <name> with or without the widgets namespace
    element = root.find(f"{{*}}{tag}")
    if element is None or element.text is None:
        return None
    return element.text.strip()


def get_project_info(project_dir: Path) -> ProjectInfo:
    """Describe a linked project using its Cordova config file.

    The first existing config file of CONFIG_XML_CANDIDATES provides
    ``<name>`` and ``<description>``. Without one, placeholder values are
    used.

    Raises:
        MonacaConfigError: If the directory is not linked to a project
        MonacaIOError: If the config file can't be read or parsed
    """
    project_id = get_project_id(project_dir)
    name, description = UNDEFINED_PROJECT_NAME, NO_DESCRIPTION

    for candidate in CONFIG_XML_CANDIDATES:
        config_file = project_dir / candidate
        if not config_file.is_file():
            continue
        try:
            root = ET.parse(config_file).getroot()
        except (OSError, ET.ParseError) as e:
            raise MonacaIOError(f"Failed to read {config_file}: {e}") from e
        name = _widget_text(root, "name") or name
        description = _widget_text(root, "description") or description
        break

    return ProjectInfo(
        name=name,
        description=description,
        directory=project_dir,
        project_id=project_id,
    )
