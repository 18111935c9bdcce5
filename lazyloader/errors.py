"""Error types raised by the lazy loader."""


class LazyLoaderError(Exception):
    """Base error for lazy proxy generation and loading failures."""


class ConfigurationError(LazyLoaderError):
    """Raised when the configuration file or proxy mapping is invalid."""


class TargetNotFoundError(ConfigurationError):
    """Raised when a mapped target cannot be imported or is not a class."""


class ProxyNotFoundError(LazyLoaderError, LookupError):
    """Raised when no resolver claims a proxy identifier."""


class ProxyNotReadyError(LazyLoaderError):
    """Raised when a claimed cache entry does not exist yet."""


class ProxyModuleError(LazyLoaderError):
    """Raised when a cached proxy module cannot be imported or lacks its class."""
