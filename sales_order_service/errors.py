"""
errors.py — Error Taxonomy for Cart, Catalog and Order Operations

Every failure that can reach the caller is one of the classes below. Each carries
a human-readable message (shown to the sales agent as-is) and a `retryable` flag
telling the UI whether to offer a "retry" action.

    OrderServiceError
    ├── ValidationError           missing customer / empty cart
    ├── AuthError                 missing or rejected bearer token
    ├── NetworkError              no response from the backend
    ├── ServerError               non-2xx response
    ├── CacheCorruptionError      unreadable persisted record
    └── SubmissionInProgressError concurrent submit on one pipeline
"""

import httpx


class OrderServiceError(Exception):
    """Base class for all classified errors."""
    reason = "error"
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(OrderServiceError):
    reason = "validation"

    def __init__(self, message: str = "Faltan datos para enviar el pedido."):
        super().__init__(message)


class AuthError(OrderServiceError):
    reason = "auth"

    def __init__(self, message: str = "No se ha iniciado sesión o el token no está disponible."):
        super().__init__(message)


class NetworkError(OrderServiceError):
    reason = "network"
    retryable = True

    def __init__(self, message: str = "No se pudo conectar al servidor. Verifica tu conexión."):
        super().__init__(message)


class ServerError(OrderServiceError):
    """
    Non-2xx response from the backend.

    Attributes:
        status_code (int): HTTP status returned by the backend.
        detail (str | None): Server-provided `message` field, if any.
    """
    reason = "server"
    retryable = True

    def __init__(self, status_code: int, detail=None):
        self.status_code = status_code
        self.detail = detail
        if status_code == 404:
            # A 404 means a misconfigured base URL, not a rejected order
            message = ("No se encontró la ruta del servidor (Error 404). "
                       "Por favor, verifica la dirección de la API.")
        else:
            message = f"Error del servidor. Código: {status_code}. Mensaje: {detail or 'Intenta nuevamente.'}"
        super().__init__(message)

    @property
    def route_not_found(self) -> bool:
        return self.status_code == 404


class CacheCorruptionError(OrderServiceError):
    reason = "cache_corruption"

    def __init__(self, key: str, cause=None):
        self.key = key
        super().__init__(f"Persisted record '{key}' is unreadable: {cause}")


class SubmissionInProgressError(OrderServiceError):
    reason = "in_progress"

    def __init__(self, message: str = "Ya se está enviando un pedido."):
        super().__init__(message)


def _server_detail(response: httpx.Response):
    """Extracts the backend's `message` field from an error body, if present."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        detail = body.get("message") or body.get("detail")
        if isinstance(detail, dict):
            detail = detail.get("message")
        return detail
    return None


def classify_http_error(exc: Exception) -> OrderServiceError:
    """
    Maps an httpx exception onto the error taxonomy.

    Args:
        exc (Exception): The exception raised by an httpx call.

    Returns:
        OrderServiceError: AuthError for 401/403, ServerError for any other
        non-2xx status, NetworkError for transport-level failures.
    """
    if isinstance(exc, OrderServiceError):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if status in (401, 403):
            return AuthError("No has iniciado sesión o tu sesión ha expirado.")
        return ServerError(status, _server_detail(exc.response))
    if isinstance(exc, httpx.TransportError):
        return NetworkError()
    return OrderServiceError(f"Ocurrió un error inesperado: {exc}")
