"""NATS subjects served by the plugin registry."""

from dataclasses import dataclass

DEFAULT_NAMESPACE = "core"


@dataclass(frozen=True)
class Topics:
    """Subjects of the registry under a namespace (``core`` by default)."""

    namespace: str = DEFAULT_NAMESPACE

    @property
    def list_available(self) -> str:
        return f"{self.namespace}.pluginlist.available"

    @property
    def list_installed(self) -> str:
        return f"{self.namespace}.pluginlist.installed"

    @property
    def install(self) -> str:
        return f"{self.namespace}.plugin.install"

    @property
    def uninstall(self) -> str:
        return f"{self.namespace}.plugin.uninstall"

    @property
    def create(self) -> str:
        return f"{self.namespace}.plugin.create"


DEFAULT_TOPICS = Topics()

# Header set on ERROR replies, so that callers of the list subjects can tell
# a NetResponse error from a Plugins reply.
ERROR_HEADER = "Agilestack-Error"
ERROR_HEADERS = {ERROR_HEADER: "true"}
