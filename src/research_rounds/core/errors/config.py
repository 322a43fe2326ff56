"""Configuration error classes."""


class ConfigValidationError(ValueError):
    """A configuration value is out of its allowed range.

    Attributes:
        field: Name of the offending config field
        message: What is wrong with the value
    """

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"Invalid config '{field}': {message}")
