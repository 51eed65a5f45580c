# ==============================================================================
# ERRORES DEL LIBRO CONTABLE
# ==============================================================================
# Ningún error de este núcleo es fatal para el proceso:
# - ValidationError    → datos del usuario inválidos (no modifica estado)
# - InvalidTransition  → cambio de estado no permitido
# - InvalidRate        → tasa no positiva o no finita (se conserva la anterior)
# - PersistenceError   → fallo leyendo/escribiendo el almacenamiento
# ==============================================================================

from typing import Any, Dict, Optional


class LedgerError(Exception):
    """Excepción base del libro contable."""

    def to_dict(self) -> Dict[str, Any]:
        """Cuerpo JSON para la respuesta de error."""
        return {'success': False, 'error': str(self)}


class ValidationError(LedgerError):
    """Entrada del usuario inválida en un campo concreto."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d.update({'field': self.field, 'reason': self.reason})
        return d


class InvalidTransition(LedgerError):
    """Cambio de estado no permitido por la máquina de estados."""

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(f"Transición no permitida: {from_status} → {to_status}")

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d.update({'from': self.from_status, 'to': self.to_status})
        return d


class InvalidRate(LedgerError):
    """Tasa de cambio inválida (no finita, no positiva o ausente)."""

    def __init__(self, value: Any):
        self.value = value
        if value is None:
            message = "No hay tasa de cambio disponible"
        else:
            message = f"Tasa de cambio inválida: {value!r}"
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d['value'] = self.value if isinstance(self.value, (int, float, str)) else None
        return d


class PersistenceError(LedgerError):
    """Fallo de lectura/escritura en el almacenamiento local."""

    def __init__(self, path: str, reason: str, original: Optional[BaseException] = None):
        self.path = path
        self.reason = reason
        self.original = original
        super().__init__(f"Error de persistencia en {path}: {reason}")
