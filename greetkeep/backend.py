"""
Pluggable metadata gateway factory.

Creates the persistence gateway based on configuration. Built-in backends
are ``sqlite`` (default), ``json`` and ``memory``. External backends
register via the ``greetkeep.backends`` entry point group.

External backend packages provide a factory function::

    def create_gateway(config: GreetkeepConfig) -> MetadataGatewayProtocol:
        ...

and register it in their pyproject.toml::

    [project.entry-points."greetkeep.backends"]
    my-backend = "my_package.backend:create_gateway"
"""

from .config import GreetkeepConfig
from .protocol import MetadataGatewayProtocol

LOCAL_BACKENDS = ("sqlite", "json")


def create_gateway(config: GreetkeepConfig) -> MetadataGatewayProtocol:
    """
    Create the persistence gateway from configuration.

    For built-in backends, data lives under the store directory
    (``config.data_path``). Other names are loaded from the
    ``greetkeep.backends`` entry point group.
    """
    from .document_store import JsonFileMetadataStore, MemoryMetadataStore, SqliteMetadataStore

    if config.backend == "sqlite":
        return SqliteMetadataStore(config.data_path)
    if config.backend == "json":
        return JsonFileMetadataStore(config.data_path)
    if config.backend == "memory":
        return MemoryMetadataStore()
    return _load_backend(config.backend, config)


def _load_backend(name: str, config: GreetkeepConfig) -> MetadataGatewayProtocol:
    """Load a backend by entry point name."""
    from importlib.metadata import entry_points

    eps = entry_points(group="greetkeep.backends")
    for ep in eps:
        if ep.name == name:
            factory = ep.load()
            return factory(config)

    available = [ep.name for ep in eps]
    if available:
        raise ValueError(
            f"Unknown backend: {name!r}. Available: sqlite, json, memory, {', '.join(available)}"
        )
    raise ValueError(
        f"Unknown backend: {name!r}. Built-in backends are sqlite, json and memory."
    )
