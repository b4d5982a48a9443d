"""
Exception Definitions - Custom exceptions for the Chat Auto-Responder
====================================================================

This module defines all custom exceptions used throughout the application,
providing clear error handling and meaningful error messages.
"""

from typing import Optional


class ResponderError(Exception):
    """
    Base exception for all auto-responder errors.

    All custom exceptions in this application inherit from this base class,
    allowing for easy catching of all application-specific errors.

    Attributes:
        message (str): Human-readable error description
        details (dict): Additional error details for debugging
    """

    def __init__(self, message: str, details: dict = None):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            details: Optional dictionary with additional error context
        """
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return formatted error message with details if present."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigError(ResponderError):
    """
    Configuration-related errors.

    Raised when there are issues with:
    - Missing configuration files
    - Invalid configuration values (e.g. hit rate outside [0, 1])
    - Missing global defaults or response list

    A ConfigError during startup is fatal: the responder cannot serve
    without a valid configuration.
    """
    pass


class ParseError(ConfigError):
    """
    Malformed configuration or rule text.

    Raised at load time only. Rule sets are compiled before any message
    is evaluated, so evaluation never raises this.
    """
    pass


class RuleParseError(ParseError):
    """
    Rule language errors.

    Raised for an unrecognized predicate line or an invalid regular
    expression.

    Attributes:
        line (int): 1-based line number in the rule text
        column (int): 1-based column of the offending character
    """

    def __init__(self, message: str, line: int, column: int = 1, details: dict = None):
        """
        Initialize rule parse error with position information.

        Args:
            message: Human-readable error description
            line: 1-based line number
            column: 1-based column number
            details: Optional dictionary with additional error context
        """
        self.line = line
        self.column = column
        super().__init__(message, details)

    def __str__(self) -> str:
        """Return formatted error message with position."""
        base = super().__str__()
        return f"{base} | At line {self.line}, column {self.column}"


class ContentError(ParseError):
    """
    Malformed response content (e.g. an empty random text list).

    Isolated to the offending response: the loader skips that response
    and keeps the rest of the configuration.
    """
    pass


class PersistError(ResponderError):
    """
    Configuration save errors.

    Raised when the current configuration cannot be written back to disk.
    The in-memory configuration stays valid and unaffected.
    """
    pass


class RenderError(ResponderError):
    """
    Reply delivery errors.

    Raised when a selected response cannot be delivered to the chat
    platform:
    - Webhook connection failures
    - Non-success HTTP status from the platform bridge
    - Missing image files
    - Empty random text lists

    Attributes:
        reference (str): Reference of the message being replied to
    """

    def __init__(self, message: str, reference: Optional[str] = None, details: dict = None):
        self.reference = reference
        super().__init__(message, details)
