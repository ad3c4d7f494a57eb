# SnapTag - Tagged Camera Capture & Photo Organizer
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("snaptag")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

# ── Centralized project identity ──
# Change ONLY these constants to rename the entire project.
# All modules import from here — no scattered name references.
PROJECT_NAME = "SnapTag"
STATE_DIRNAME = ".snaptag"

# Logical keys in the durable key-value store
PROJECTS_KEY = "projects"
TEMPLATES_KEY = "templates"
ACTIVE_PROJECT_KEY = "active_project"
