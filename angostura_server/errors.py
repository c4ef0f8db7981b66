"""Error types raised by the client and the checkout rules."""

from typing import Any, Optional

import httpx


class ApiError(Exception):
    """Error response from the Compras Angostura API."""

    status_code: int = 400
    default_message = "Error en la solicitud"
    label: Optional[str] = None

    def __init__(
        self,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def notification(self) -> str:
        """Text for the transient notification shown to the user."""
        if self.label:
            return f"{self.label}: {self.message}"
        return self.message


class UnauthorizedError(ApiError):
    status_code = 401
    default_message = "Sesión inválida o expirada"
    label = "No autorizado"


class ForbiddenError(ApiError):
    status_code = 403
    default_message = "No tienes permisos"
    label = "Acceso denegado"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Recurso no encontrado"
    label = "No encontrado"


class ServerError(ApiError):
    status_code = 500
    default_message = "Error interno"
    label = "Error del servidor"


class ClientApiError(ApiError):
    """Any other 4xx response."""


class ApiUnavailableError(ApiError):
    """The API could not be reached at all."""

    status_code = 503
    default_message = "No se pudo conectar con el servidor"


def error_for_response(response: httpx.Response) -> ApiError:
    """Build the ApiError matching a failed response's status."""
    status = response.status_code
    details: dict[str, Any] = {}
    message = None
    try:
        data = response.json()
    except ValueError:
        data = None

    if isinstance(data, dict):
        details = data
        raw = data.get("message")
        # NestJS validation pipes send a list of messages
        if isinstance(raw, list):
            message = "; ".join(str(m) for m in raw)
        elif raw:
            message = str(raw)

    if status == 401:
        error_cls: type[ApiError] = UnauthorizedError
    elif status == 403:
        error_cls = ForbiddenError
    elif status == 404:
        error_cls = NotFoundError
    elif status >= 500:
        error_cls = ServerError
    else:
        error_cls = ClientApiError

    return error_cls(message, status_code=status, details=details)


class CheckoutValidationError(Exception):
    """Checkout form failed local validation before submission."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = errors
        # The first failing rule is the one surfaced as a notification
        super().__init__(next(iter(errors.values())))

    @property
    def message(self) -> str:
        return str(self)
