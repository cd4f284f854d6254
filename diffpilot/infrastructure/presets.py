"""Project presets file loader.

Format::

    {"presets": [{"alias": "web", "path": "/srv/web", "description": "..."}]}
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from diffpilot.domain.entities.project import ProjectPreset

logger = logging.getLogger(__name__)


def load_presets(path: Path) -> list[ProjectPreset]:
    """Read presets; a missing or malformed file yields an empty list."""
    if not path.exists():
        logger.info("Presets file %s not found, no presets loaded", path)
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        raw_presets = data.get("presets") or []
        presets = [ProjectPreset(**item) for item in raw_presets]
    except (json.JSONDecodeError, AttributeError, TypeError, ValidationError) as e:
        logger.warning("Invalid presets file %s: %s", path, e)
        return []
    except OSError as e:
        logger.warning("Cannot read presets file %s: %s", path, e)
        return []

    seen: set[str] = set()
    unique: list[ProjectPreset] = []
    for preset in presets:
        if preset.alias in seen:
            logger.warning("Duplicate preset alias %r in %s, keeping the first", preset.alias, path)
            continue
        seen.add(preset.alias)
        unique.append(preset)
    logger.info("Loaded %d project preset(s) from %s", len(unique), path)
    return unique
