"""Exception hierarchy for Portier."""


class PortierError(Exception):
    """Base exception for all Portier errors."""


class ConfigError(PortierError):
    """Raised when configuration is invalid."""


class MailDeliveryError(PortierError):
    """Raised when a one-time code cannot be handed to the mail server."""


class TemplateError(PortierError):
    """Raised when a view template or dictionary cannot be loaded."""
