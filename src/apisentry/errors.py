"""Exception hierarchy shared across APISentry modules."""


class APISentryError(Exception):
    """Base class for all APISentry errors."""


class ConfigError(APISentryError):
    """A configuration value is present but malformed."""


class ParseError(APISentryError):
    """The API description could not be loaded or parsed."""


class TokenError(APISentryError):
    """An access token could not be obtained."""


class ScanCancelled(APISentryError):
    """Raised at a stage boundary once cancellation has been requested."""


class InvalidTransitionError(APISentryError):
    """A scan job was asked to move to a status it cannot reach."""

    def __init__(self, current: str, target: str):
        super().__init__(f"Cannot transition scan from {current} to {target}")
        self.current = current
        self.target = target
