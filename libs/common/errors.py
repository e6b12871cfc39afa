from __future__ import annotations


class DomainError(Exception):
    def __init__(self, error_code: str, message: str, retryable: bool = False) -> None:
        super().__init__(message)
        self.error_code = error_code
        self.message = message
        self.retryable = retryable


class AuthenticationError(DomainError):
    def __init__(self, message: str = "पहचान सत्यापित नहीं हो सकी, कृपया फिर से लॉगिन करें।") -> None:
        super().__init__("AUTH_FAILED", message, retryable=False)


class ValidationError(DomainError):
    def __init__(self, message: str = "अनुरोध मान्य नहीं है।") -> None:
        super().__init__("VALIDATION_FAILED", message, retryable=False)


class UpstreamTransientError(DomainError):
    def __init__(self, message: str = "AI से जुड़ने में समस्या हुई") -> None:
        super().__init__("UPSTREAM_TRANSIENT", message, retryable=True)


class RateLimitError(DomainError):
    def __init__(self, message: str = "बहुत ज्यादा requests, कृपया थोड़ी देर बाद कोशिश करें।") -> None:
        super().__init__("RATE_LIMITED", message, retryable=True)


class QuotaExhaustedError(DomainError):
    def __init__(self, message: str = "Credits समाप्त हो गए हैं।") -> None:
        super().__init__("QUOTA_EXHAUSTED", message, retryable=False)


class NotFoundError(DomainError):
    def __init__(self, message: str = "अनुरोधित चैट नहीं मिली।") -> None:
        super().__init__("NOT_FOUND", message, retryable=False)


class ConflictError(DomainError):
    def __init__(self, message: str = "पिछला जवाब अभी आ रहा है, कृपया प्रतीक्षा करें।") -> None:
        super().__init__("CONFLICT", message, retryable=True)


class ConfigurationError(DomainError):
    def __init__(self, message: str = "सेवा अस्थायी रूप से अनुपलब्ध है") -> None:
        super().__init__("CONFIGURATION_ERROR", message, retryable=False)
