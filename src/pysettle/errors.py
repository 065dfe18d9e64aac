class SettleError(Exception):
    """Base class for pysettle errors."""


class ConfigurationError(SettleError):
    """Raised when a registry or setting entry is malformed."""


class StoreError(SettleError):
    """Base class for per-entry preference store failures."""


class ReadError(StoreError):
    """Raised when a store cannot report the value at an address."""


class WriteError(StoreError):
    """Raised when a store rejects a write or removal."""


class UnknownStoreError(SettleError):
    pass


class IdentityError(SettleError):
    """Raised when the target user identity cannot be resolved."""


class PrivilegeError(SettleError):
    """Raised when the caller lacks elevated privilege."""
