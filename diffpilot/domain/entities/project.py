"""Project entities - alias to filesystem path mapping."""

from pydantic import BaseModel


class ProjectEntry(BaseModel):
    """Registered project for a user."""

    alias: str
    path: str


class ProjectView(BaseModel):
    """Project as listed to the user."""

    alias: str
    path: str
    is_active: bool = False


class ProjectPreset(BaseModel):
    """Project offered by the presets file."""

    alias: str
    path: str
    description: str | None = None
