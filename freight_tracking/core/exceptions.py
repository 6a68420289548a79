"""
Sistema di gestione errori centralizzato per il tracking
"""
from abc import ABC
from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(Enum):
    """Codici errore standardizzati"""
    # Validation / precondition errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    TRACKING_PRECONDITION_FAILED = "TRACKING_PRECONDITION_FAILED"
    MISSING_TRACKING_IDENTIFIER = "MISSING_TRACKING_IDENTIFIER"
    UNSUPPORTED_PORTAL = "UNSUPPORTED_PORTAL"
    CARRIER_NOT_CONFIGURED = "CARRIER_NOT_CONFIGURED"

    # Not found errors
    ENTITY_NOT_FOUND = "ENTITY_NOT_FOUND"
    ORDER_NOT_FOUND = "ORDER_NOT_FOUND"

    # Infrastructure errors
    DATABASE_ERROR = "DATABASE_ERROR"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    CAPTCHA_NOT_SOLVED = "CAPTCHA_NOT_SOLVED"


class BaseApplicationException(Exception, ABC):
    """Base exception per l'applicazione"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 400
    ):
        self.message = message
        self.error_code = error_code.value
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Converte l'eccezione in dizionario per la risposta API"""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "status_code": self.status_code
        }


class NotFoundException(BaseApplicationException):
    """Entità non trovata"""

    def __init__(
        self,
        entity_type: str,
        entity_id: Any = None,
        details: Optional[Dict[str, Any]] = None
    ):
        if entity_id is not None:
            message = f"{entity_type} with id '{entity_id}' not found"
        else:
            message = f"{entity_type} not found"

        error_details = details or {}
        if entity_id is not None:
            error_details["entity_id"] = entity_id
        error_details["entity_type"] = entity_type

        super().__init__(
            message,
            ErrorCode.ENTITY_NOT_FOUND,
            error_details,
            404
        )


class InfrastructureException(BaseApplicationException):
    """Errori di infrastruttura"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.DATABASE_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details, 500)


class TrackingPreconditionException(BaseApplicationException):
    """Carrier configuration does not allow tracking this order (skip, not an error)"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.TRACKING_PRECONDITION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details, 422)


class CarrierTrackingException(BaseApplicationException):
    """Carrier backend failed or answered with an unusable payload"""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.EXTERNAL_SERVICE_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, error_code, details, 502)


class CaptchaNotSolvedException(CarrierTrackingException):
    """CAPTCHA rejected or not captured on every attempt"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.CAPTCHA_NOT_SOLVED, details)


class ExceptionFactory:
    """Factory per creare eccezioni specifiche"""

    @staticmethod
    def order_not_found(order_id: int) -> NotFoundException:
        return NotFoundException("Order", order_id)

    @staticmethod
    def missing_tracking_identifier(carrier_name: str, tracking_system: str) -> TrackingPreconditionException:
        return TrackingPreconditionException(
            f"Carrier '{carrier_name}' uses {tracking_system} but has no tracking identifier",
            ErrorCode.MISSING_TRACKING_IDENTIFIER,
            {"carrier": carrier_name, "tracking_system": tracking_system}
        )

    @staticmethod
    def unsupported_portal(carrier_name: str, portal_code: Optional[str]) -> TrackingPreconditionException:
        return TrackingPreconditionException(
            f"Portal '{portal_code}' is not supported (carrier '{carrier_name}')",
            ErrorCode.UNSUPPORTED_PORTAL,
            {"carrier": carrier_name, "portal_code": portal_code}
        )

    @staticmethod
    def carrier_not_configured(carrier_name: str, tracking_system: str) -> TrackingPreconditionException:
        return TrackingPreconditionException(
            f"No usable {tracking_system} adapter for carrier '{carrier_name}' (missing credentials or adapter)",
            ErrorCode.CARRIER_NOT_CONFIGURED,
            {"carrier": carrier_name, "tracking_system": tracking_system}
        )
