"""
Signature Verification Exceptions
=================================
Exception classes raised by configuration and canonicalization.
"""


class SignVerifyError(Exception):
    """Base exception for signverify."""
    pass


class ConfigurationError(SignVerifyError):
    """Raised when the signing configuration is missing or invalid."""
    pass


class DuplicateParameterError(SignVerifyError):
    """Raised when a parameter name appears more than once and duplicates are rejected."""

    def __init__(self, name: str):
        super().__init__(f"Duplicate parameter: {name}")
        self.name = name


class MalformedTimestampError(SignVerifyError):
    """Raised when a timestamp is not integer Unix seconds."""

    def __init__(self, value: str):
        super().__init__("Timestamp must be integer Unix seconds")
        self.value = value


class MalformedBodyError(SignVerifyError):
    """Raised when a form body is not valid UTF-8 form data."""

    def __init__(self):
        super().__init__("Form body must be UTF-8 encoded")
