"""
Store configuration.

Each store directory holds a ``greetkeep.toml`` that selects the
persistence backend and tunes session behaviour::

    [store]
    version = 1
    created = "2025-01-01T00:00:00+00:00"

    [persistence]
    backend = "sqlite"          # sqlite | json | memory | <entry point>
    filename = "greetings.db"   # optional, relative to the store

    [session]
    debounce_seconds = 1.0

    [titles]
    main = "Main Greeting"
    alternate = "Alternate Greeting"
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

# tomllib only reads; writing needs tomli_w
try:
    import tomli_w
except ImportError:
    tomli_w = None  # type: ignore


CONFIG_FILENAME = "greetkeep.toml"
CONFIG_VERSION = 1

DEFAULT_BACKEND = "sqlite"
DEFAULT_FILENAMES = {
    "sqlite": "greetings.db",
    "json": "greetings",
}
DEFAULT_DEBOUNCE_SECONDS = 1.0
DEFAULT_MAIN_TITLE = "Main Greeting"
DEFAULT_ALTERNATE_TITLE = "Alternate Greeting"


def get_default_store_path() -> Path:
    """Store directory: GREETKEEP_STORE_PATH, else ~/.greetkeep."""
    env_path = os.environ.get("GREETKEEP_STORE_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return Path.home() / ".greetkeep"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class GreetkeepConfig:
    """Settings for one store directory."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=_now_iso)

    backend: str = DEFAULT_BACKEND
    filename: str = ""

    debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS

    # Shown for greetings the user has not titled
    main_title: str = DEFAULT_MAIN_TITLE
    alternate_title: str = DEFAULT_ALTERNATE_TITLE

    @property
    def config_path(self) -> Path:
        return self.path / CONFIG_FILENAME

    @property
    def data_path(self) -> Path:
        """Database file or document directory for the built-in backends."""
        name = self.filename or DEFAULT_FILENAMES.get(self.backend, self.backend)
        return self.path / name

    def exists(self) -> bool:
        return self.config_path.exists()

    def to_toml_dict(self) -> dict[str, Any]:
        persistence: dict[str, Any] = {"backend": self.backend}
        if self.filename:
            persistence["filename"] = self.filename
        return {
            "store": {"version": self.version, "created": self.created},
            "persistence": persistence,
            "session": {"debounce_seconds": self.debounce_seconds},
            "titles": {"main": self.main_title, "alternate": self.alternate_title},
        }


def _section(data: dict, name: str) -> dict:
    value = data.get(name, {})
    return value if isinstance(value, dict) else {}


def _debounce(session: dict, source: Path) -> float:
    raw = session.get("debounce_seconds", DEFAULT_DEBOUNCE_SECONDS)
    if isinstance(raw, bool):
        raise ValueError(f"Invalid session.debounce_seconds in {source}")
    try:
        seconds = float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Invalid session.debounce_seconds in {source}") from None
    if seconds < 0:
        raise ValueError(f"session.debounce_seconds must be >= 0 in {source}")
    return seconds


def load_config(store_path: Path) -> GreetkeepConfig:
    """
    Read ``greetkeep.toml`` from a store directory.

    Missing keys take their defaults.

    Raises:
        FileNotFoundError: No config file in ``store_path``
        ValueError: Unsupported version or invalid values
    """
    source = store_path / CONFIG_FILENAME
    if not source.exists():
        raise FileNotFoundError(f"Config not found: {source}")

    with open(source, "rb") as f:
        data = tomllib.load(f)

    store = _section(data, "store")
    persistence = _section(data, "persistence")
    titles = _section(data, "titles")

    version = store.get("version", CONFIG_VERSION)
    if not isinstance(version, int) or version > CONFIG_VERSION:
        raise ValueError(
            f"Config version {version!r} in {source} is newer than supported ({CONFIG_VERSION})"
        )

    return GreetkeepConfig(
        path=store_path,
        version=version,
        created=str(store.get("created", "")),
        backend=str(persistence.get("backend", DEFAULT_BACKEND)),
        filename=str(persistence.get("filename", "")),
        debounce_seconds=_debounce(_section(data, "session"), source),
        main_title=str(titles.get("main", DEFAULT_MAIN_TITLE)),
        alternate_title=str(titles.get("alternate", DEFAULT_ALTERNATE_TITLE)),
    )


def save_config(config: GreetkeepConfig) -> None:
    """Write ``config`` to its store directory, creating the directory."""
    if tomli_w is None:
        raise RuntimeError("tomli_w is required to save config. Install with: pip install tomli-w")

    config.path.mkdir(parents=True, exist_ok=True)
    with open(config.config_path, "wb") as f:
        tomli_w.dump(config.to_toml_dict(), f)


def load_or_create_config(store_path: Path) -> GreetkeepConfig:
    """Read the store's config, writing a default one on first use."""
    if (store_path / CONFIG_FILENAME).exists():
        return load_config(store_path)
    config = GreetkeepConfig(path=store_path)
    save_config(config)
    return config
