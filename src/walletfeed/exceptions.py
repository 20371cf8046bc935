"""Error taxonomy shared by adapters, the orchestrator and the HTTP surface."""


class WalletFeedError(Exception):
    """Base class for all walletfeed errors."""


class ConfigurationError(WalletFeedError):
    """A required setting is missing or invalid. Never retried."""


class MissingApiKeyError(ConfigurationError):
    def __init__(self, provider: str, hint: str = "") -> None:
        message = f"{provider} API key required for transaction history."
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)
        self.provider = provider


class ExternalServiceError(WalletFeedError):
    """A provider answered with a non-success status."""


class SourceTransportError(ExternalServiceError):
    """The provider could not be reached (DNS, connect, read, TLS)."""


class RateLimitedError(ExternalServiceError):
    """The provider answered HTTP 429."""


class UnsupportedNetworkError(WalletFeedError, ValueError):
    pass


class InvalidXpubError(WalletFeedError, ValueError):
    pass


class InvalidAddressError(WalletFeedError, ValueError):
    pass
