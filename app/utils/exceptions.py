"""
Custom Exception Classes for the Bandi Relay API
"""
from typing import Dict, Any
from fastapi import HTTPException


class RelayBaseException(Exception):
    """Base exception for the relay"""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        details: Dict[str, Any] = None,
        cause: Exception = None
    ):
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/response"""
        result = {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }
        if self.cause:
            result["cause"] = str(self.cause)
        return result


class ConfigurationError(RelayBaseException):
    """Raised when configuration is invalid or missing"""

    def __init__(self, message: str, config_key: str = None, config_value: Any = None, **kwargs):
        details = kwargs.pop('details', {})
        if config_key:
            details['config_key'] = config_key
        if config_value is not None:
            details['config_value'] = str(config_value)
        super().__init__(message, error_code="CONFIGURATION_ERROR", details=details, **kwargs)


class ExternalServiceError(RelayBaseException):
    """Raised when external service calls fail"""

    def __init__(self, message: str, service_name: str = None, status_code: int = None,
                 error_code: str = "EXTERNAL_SERVICE_ERROR", **kwargs):
        details = kwargs.pop('details', {})
        if service_name:
            details['service_name'] = service_name
        if status_code:
            details['status_code'] = status_code
        self.status_code = status_code
        super().__init__(message, error_code=error_code, details=details, **kwargs)


class MalformedResponseError(ExternalServiceError):
    """Raised when the matching service response is not well-formed XML"""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('service_name', "matching-service")
        super().__init__(message, error_code="MALFORMED_RESPONSE", **kwargs)


class ResourceFetchError(ExternalServiceError):
    """Raised when an HTTP fetch (response document, PDF) does not succeed"""

    def __init__(self, message: str, url: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if url:
            details['url'] = url
        kwargs.setdefault('error_code', "RESOURCE_FETCH_ERROR")
        super().__init__(message, details=details, **kwargs)


class DocumentDecodeError(ResourceFetchError):
    """Raised when fetched bytes cannot be read as a PDF"""

    def __init__(self, message: str, url: str = None, **kwargs):
        super().__init__(message, url=url, error_code="DOCUMENT_DECODE_ERROR", **kwargs)


class ScoringServiceError(ExternalServiceError):
    """Raised when the embedding or judging service fails"""

    def __init__(self, message: str, model_name: str = None, **kwargs):
        details = kwargs.pop('details', {})
        if model_name:
            details['model_name'] = model_name
        super().__init__(message, error_code="SCORING_SERVICE_ERROR", details=details, **kwargs)


class WebhookDeliveryError(ExternalServiceError):
    """Raised when the ranked results cannot be posted to the webhook"""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('service_name', "webhook")
        super().__init__(message, error_code="WEBHOOK_DELIVERY_ERROR", **kwargs)


# HTTP Exception Mapping
def map_to_http_exception(exc: RelayBaseException) -> HTTPException:
    """Map custom exceptions to HTTP exceptions"""

    status_code_mapping = {
        ConfigurationError: 500,
        ExternalServiceError: 502,
        MalformedResponseError: 502,
        ResourceFetchError: 502,
        DocumentDecodeError: 502,
        ScoringServiceError: 502,
        WebhookDeliveryError: 502,
    }

    status_code = status_code_mapping.get(type(exc), 500)

    detail = {
        "error": exc.to_dict(),
        "message": exc.message
    }

    return HTTPException(status_code=status_code, detail=detail)
