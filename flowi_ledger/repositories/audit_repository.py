# ==============================================================================
# REPOSITORIO DE AUDITORÍA
# ==============================================================================
# audit.json guarda la bitácora como lista, la entrada más nueva primero:
#
#   [{"type": "CUENTA", "user": "ana", "message": "...",
#     "timestamp": "2024-01-01 10:00:00", "related_id": "F-100", "details": {}}]
#
# Tipos usados: CUENTA, ESTADO, TASA, SISTEMA
# ==============================================================================

import os
from datetime import datetime
from typing import Any, Dict, List, Optional

from .base import ListRepository

# Campos donde busca el texto libre
SEARCHABLE_FIELDS = ('type', 'user', 'message', 'related_id')


def _matches(entry: Dict[str, Any], needle: str) -> bool:
    return any(needle in str(entry.get(field, '')).lower() for field in SEARCHABLE_FIELDS)


class AuditRepository(ListRepository):
    """Bitácora de acciones sobre cuentas y tasa de cambio."""

    # Tope de entradas; al superarlo se descartan las más viejas
    MAX_LOGS = 10000

    def __init__(self, base_path: str):
        super().__init__(os.path.join(base_path, 'audit.json'))

    def load(self) -> List[Dict[str, Any]]:
        """Entradas ordenadas de la más reciente a la más vieja."""
        return sorted(self.get_all(), key=lambda entry: entry.get('timestamp', ''), reverse=True)

    def save(self, logs: List[Dict[str, Any]]) -> None:
        self.save_all(logs[:self.MAX_LOGS])

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Agrega una entrada al inicio de la bitácora.

        El usuario vacío se registra como 'sistema'.
        """
        entry = dict(
            type=log_type,
            user=user or 'sistema',
            message=message,
            timestamp=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            related_id=related_id,
            details=details or {},
        )

        # Leer y reescribir bajo el mismo lock para no perder entradas concurrentes
        with self._file_lock:
            self.save([entry] + self.get_all())

    def search_logs(
        self,
        query: str = '',
        log_type: str = None,
        related_id: str = None
    ) -> List[Dict[str, Any]]:
        """
        Filtra por tipo y referencia exactos, y por texto sin distinguir
        mayúsculas en tipo, usuario, mensaje y referencia.
        """
        needle = (query or '').lower()
        return [
            entry for entry in self.load()
            if (not log_type or entry.get('type') == log_type)
            and (not related_id or entry.get('related_id') == related_id)
            and (not needle or _matches(entry, needle))
        ]

    def get_recent_logs(self, limit: int = 100) -> List[Dict[str, Any]]:
        return self.load()[:limit]
