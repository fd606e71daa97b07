import os
import tomllib
from pathlib import Path


# Settings key constants
SETTING_RESULTS_PATH = 'report.results'
SETTING_ERRORS_PATH = 'report.errors'
SETTING_HASH_ALGORITHM = 'hash.algorithm'
SETTING_WORKERS = 'concurrency.workers'
SETTING_LOG_PATH = 'logging.path'
SETTING_LOG_LEVEL = 'logging.level'

CONFIG_ENV = 'MIRRORCHECK_CONFIG'
DEFAULT_CONFIG_NAME = 'mirrorcheck.toml'


class AuditSettings:
    """Read-only view of an optional TOML settings file.

    The class does not know the schema; callers pick keys and defaults. When
    no file is given, or the file does not exist, every lookup returns its
    default.

    Example:
        settings = AuditSettings(Path('mirrorcheck.toml'))
        algorithm = settings.get(SETTING_HASH_ALGORITHM, 'md5')
    """

    def __init__(self, settings_file: Path | None = None):
        self._settings_file = settings_file
        self._settings = {}

        if settings_file is not None and settings_file.exists():
            with open(settings_file, 'rb') as f:
                self._settings = tomllib.load(f)

    @classmethod
    def locate(cls, explicit: str | os.PathLike | None = None) -> 'AuditSettings':
        """Load settings from the explicit path, $MIRRORCHECK_CONFIG, or ./mirrorcheck.toml.

        Raises:
            FileNotFoundError: an explicitly named file does not exist
        """
        if explicit is None:
            explicit = os.environ.get(CONFIG_ENV)

        if explicit is not None:
            settings_file = Path(explicit)
            if not settings_file.exists():
                raise FileNotFoundError(f"Settings file not found: {settings_file}")
            return cls(settings_file)

        return cls(Path.cwd() / DEFAULT_CONFIG_NAME)

    @property
    def settings_file(self) -> Path | None:
        return self._settings_file

    def get(self, key: str, default=None):
        """Get a setting by dotted key path, e.g. 'report.results'.

        Returns default when any part of the path is missing or an
        intermediate value is not a table.
        """
        value = self._settings

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value
