"""Exceptions raised by the speller pipeline.

Every error carries the Spanish message shown and spoken to the user.
"""


class SpellerError(Exception):
    """Base class for all pipeline errors."""

    message = "Ocurrió un error."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        self.message = message or self.message


class CameraError(SpellerError):
    """Camera could not be started for an unknown reason."""

    message = "Error desconocido al activar la cámara."
    alert = "❌ No se pudo activar la cámara. Revisa la consola."
    speech = "Error al activar la cámara."


class CameraPermissionDenied(CameraError):
    message = "Acceso a la cámara denegado."
    alert = "❌ Acceso a la cámara denegado. Revisa los permisos."
    speech = "Acceso a la cámara denegado. Permite el acceso arriba."


class CameraNotFound(CameraError):
    message = "No se encontró cámara."
    alert = "❌ No se encontró cámara disponible."
    speech = "No se encontró cámara."


class CameraNotReady(SpellerError):
    message = "Primero debes activar la cámara."


class ModelLoadError(SpellerError):
    message = "Error al cargar el modelo."


class ModelNotReady(SpellerError):
    message = "El modelo no está listo."


class InvalidLetterCount(SpellerError):
    message = "Por favor, indica un número válido de letras."


class ActionUnavailable(SpellerError):
    message = "Esa acción no está disponible ahora."


class ClassificationError(SpellerError):
    message = "No se pudo reconocer la palabra."
