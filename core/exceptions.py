"""
Core domain exceptions.

These exceptions are transport-agnostic and should be caught by the server
layer to convert into JSON-RPC error objects.
"""


class CoreError(Exception):
    """Base exception for all core errors."""

    pass


class ValidationError(CoreError):
    """Raised when input is malformed (bad plugin spec, missing argument)."""

    pass


class NotFoundError(CoreError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: str, message: str | None = None):
        self.resource = resource
        self.identifier = identifier
        super().__init__(message or f"{resource} not found: {identifier}")


class ConflictError(CoreError):
    """Raised when creating a resource whose key is already taken."""

    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} already installed: {identifier}")


class InvalidOperationError(CoreError):
    """Raised when an operation cannot be performed in the current state."""

    pass


class RequestTimeoutError(CoreError, TimeoutError):
    """Raised when a backend request exceeds its deadline."""

    pass


class BackendFatalError(CoreError):
    """Raised when the backend process is gone or never became ready."""

    pass


class BackendCallError(CoreError):
    """Raised when the backend answers a request with an error object."""

    def __init__(self, message: str, code: int | None = None):
        self.code = code
        super().__init__(message)


class PartialLoadError(CoreError):
    """Raised when a single plugin fails to load or enumerate its tools.

    Callers isolate it: the failing plugin is skipped, the rest continue.
    """

    pass


class PluginLoadError(PartialLoadError):
    """Raised when a plugin entry point cannot be loaded."""

    pass


class PluginInstallError(CoreError):
    """Raised when fetching or materializing a plugin fails."""

    pass


class PluginStoreError(CoreError):
    """Raised when plugins.json exists but cannot be parsed for an update."""

    pass
