"""Error taxonomy for the routing provider."""


class ProviderError(Exception):
    """Base exception for routing provider errors."""

    pass


class ConfigurationError(ProviderError):
    """Raised when provider configuration is unusable at startup."""

    pass


class AttributeParseError(ProviderError):
    """Raised when a tag value cannot be parsed into its declared type."""

    def __init__(self, key: str, value: str, expected: str) -> None:
        super().__init__(f"Attribute {key}={value!r} is not a valid {expected}")
        self.key = key
        self.value = value
        self.expected = expected


class RenderError(ProviderError):
    """Raised when a rule template fails for one service."""

    def __init__(self, service_name: str, message: str) -> None:
        super().__init__(f"Rule template failed for service {service_name}: {message}")
        self.service_name = service_name


class RegistryError(ProviderError):
    """Raised when the registry cannot be queried."""

    pass
