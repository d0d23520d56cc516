"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    EXIT_WARNINGS = 3


class Severity(Enum):
    """Severity of an analysis diagnostic.

    Args:
        Enum (string): Severity levels recorded by the diagnostics sink.
    """

    WARNING = "warning"
    ERROR = "error"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    PYPROJECT_TOML_FILE = "pyproject.toml"
    POETRY_LOCK_FILE = "poetry.lock"
    PACKAGE_JSON_FILE = "package.json"
    PACKAGE_LOCK_FILE = "package-lock.json"
    NUGET_LOCK_FILE = "packages.lock.json"
    NUGET_PROJECT_SUFFIXES = (".csproj", ".fsproj", ".vbproj")

    SITE_PACKAGES_DIR = "site-packages"
    DEFAULT_VENV_DIR = ".venv"
    PYVENV_CFG_FILE = "pyvenv.cfg"
    NODE_MODULES_DIR = "node_modules"
    NUGET_BUILD_DIRS = ("bin", "obj")
    ENV_NUGET_PACKAGES = "NUGET_PACKAGES"

    # Directories never descended into, independent of analyzer vetoes
    IGNORED_DIRECTORIES = (".git", ".hg", ".svn")

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
    ENV_LOG_LEVEL = "BOMGRAPH_LOG_LEVEL"

    UNKNOWN_LICENSE_NAME = "Unknown"
    NO_LICENSE_ID = "None"
    DEFAULT_HASH_ALGORITHM = "sha256"
