"""Project registry - per-user alias -> path mapping with one active alias."""

import json
import logging
import threading
from collections.abc import Iterable
from pathlib import Path

from diffpilot.domain.entities.project import ProjectEntry, ProjectPreset, ProjectView
from diffpilot.domain.errors import ProjectNotFoundError

logger = logging.getLogger(__name__)


class _UserProjects:
    """Projects of a single user. Dict order is registration order."""

    __slots__ = ("projects", "active")

    def __init__(self) -> None:
        self.projects: dict[str, str] = {}
        self.active: str | None = None


class ProjectRegistry:
    """In-memory project registry, optionally backed by a JSON file.

    Paths are stored as given; checking that they exist is left to the tool
    server, which is the only component touching the project files.
    """

    def __init__(self, projects_file: Path | None = None):
        """Initialize registry; load from file if one is given and present."""
        self._file = projects_file
        self._users: dict[str, _UserProjects] = {}
        self._lock = threading.Lock()
        if self._file is not None:
            self._load()

    def _user(self, user_id: object) -> _UserProjects:
        key = str(user_id)
        if key not in self._users:
            self._users[key] = _UserProjects()
        return self._users[key]

    def _load(self) -> None:
        """Load users' projects from disk."""
        assert self._file is not None
        if not self._file.exists():
            return
        try:
            data = json.loads(self._file.read_text(encoding="utf-8"))
            for user_id, raw in (data.get("users") or {}).items():
                user = self._user(user_id)
                for item in raw.get("projects", []):
                    entry = ProjectEntry(**item)
                    user.projects[entry.alias] = entry.path
                active = raw.get("active")
                user.active = active if active in user.projects else None
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            logger.warning("Corrupted projects file %s: %s", self._file, e)
        except OSError as e:
            logger.warning("Cannot read projects file %s: %s", self._file, e)

    def _save(self) -> None:
        """Persist registry to disk (no-op without a file)."""
        if self._file is None:
            return
        with self._lock:
            data = {
                "users": {
                    user_id: {
                        "projects": [{"alias": a, "path": p} for a, p in user.projects.items()],
                        "active": user.active,
                    }
                    for user_id, user in self._users.items()
                }
            }
            tmp_file = self._file.with_suffix(".tmp")
            try:
                self._file.parent.mkdir(parents=True, exist_ok=True)
                tmp_file.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
                tmp_file.replace(self._file)
            except OSError:
                logger.warning("Failed to save projects to %s", self._file, exc_info=True)
                tmp_file.unlink(missing_ok=True)

    def register(self, user_id: object, alias: str, path: str) -> ProjectEntry:
        """Add or overwrite a project alias for the user."""
        alias = (alias or "").strip()
        path = (path or "").strip()
        if not alias or not path:
            raise ValueError("Alias and path must not be empty")
        self._user(user_id).projects[alias] = path
        self._save()
        return ProjectEntry(alias=alias, path=path)

    def set_active(self, user_id: object, alias: str) -> bool:
        """Make alias the user's active project. False if not registered."""
        alias = (alias or "").strip()
        user = self._user(user_id)
        if alias not in user.projects:
            return False
        user.active = alias
        self._save()
        return True

    def get_active(self, user_id: object) -> ProjectEntry | None:
        """Return the active project or None."""
        user = self._user(user_id)
        if user.active is None:
            return None
        return ProjectEntry(alias=user.active, path=user.projects[user.active])

    def get(self, user_id: object, alias: str) -> ProjectEntry | None:
        alias = (alias or "").strip()
        path = self._user(user_id).projects.get(alias)
        return ProjectEntry(alias=alias, path=path) if path is not None else None

    def require(self, user_id: object, alias: str) -> ProjectEntry:
        """Like get(), but raise ProjectNotFoundError for unknown aliases."""
        entry = self.get(user_id, alias)
        if entry is None:
            raise ProjectNotFoundError(alias)
        return entry

    def list(self, user_id: object) -> list[ProjectView]:
        """Projects in registration order, flagged with the active one."""
        user = self._user(user_id)
        return [
            ProjectView(alias=alias, path=path, is_active=alias == user.active)
            for alias, path in user.projects.items()
        ]

    def seed(
        self,
        user_id: object,
        presets: Iterable[ProjectPreset],
        activate_first: bool = True,
    ) -> int:
        """Register presets for a user; activate the first if none is active."""
        user = self._user(user_id)
        count = 0
        first: str | None = None
        for preset in presets:
            user.projects[preset.alias] = preset.path
            first = first or preset.alias
            count += 1
        if activate_first and first is not None and user.active is None:
            user.active = first
        if count:
            self._save()
        return count
