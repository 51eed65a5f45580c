# ==============================================================================
# REPOSITORIO DE CONFIGURACIÓN
# ==============================================================================
# Encapsula todo el acceso a settings.json
# Almacena la tasa de cambio vigente y el historial de tasas reemplazadas.
# ==============================================================================

import os
from typing import Any, Dict, List, Optional

from flowi_ledger.models import ExchangeRate
from .base import DictRepository


class SettingsRepository(DictRepository):
    """
    Repositorio de configuración del negocio.

    Formato de datos en settings.json:
    {
        "exchange_rate": {"usd_to_local": 36.5, "captured_at": "...", "source": "manual"},
        "exchange_rate_history": [{...}, {...}]
    }
    """

    KEY_RATE = 'exchange_rate'
    KEY_HISTORY = 'exchange_rate_history'

    def __init__(self, base_path: str):
        """
        Args:
            base_path: Carpeta de datos
        """
        file_path = os.path.join(base_path, 'settings.json')
        super().__init__(file_path)

    def load(self) -> Dict[str, Any]:
        """Carga toda la configuración."""
        return self.get_all()

    def get_exchange_rate(self) -> Optional[ExchangeRate]:
        """
        Tasa vigente guardada, o None si nunca se configuró.

        Raises:
            PersistenceError: Si el archivo no se puede leer
        """
        data = self.get(self.KEY_RATE)
        if not data:
            return None
        try:
            return ExchangeRate.from_dict(data)
        except (TypeError, ValueError):
            print(f"[ADVERTENCIA] Tasa guardada ilegible en settings.json: {data!r}")
            return None

    def get_exchange_rate_history(self) -> List[ExchangeRate]:
        """Tasas reemplazadas (más reciente primero)."""
        history = []
        for item in self.get(self.KEY_HISTORY, []) or []:
            try:
                history.append(ExchangeRate.from_dict(item))
            except (TypeError, ValueError):
                continue
        return history

    def save_exchange_rate(self, rate: ExchangeRate, history: List[ExchangeRate]) -> None:
        """Guarda la tasa vigente junto con su historial en una sola escritura."""
        with self._file_lock:
            data = self.load()
            data[self.KEY_RATE] = rate.to_dict()
            data[self.KEY_HISTORY] = [r.to_dict() for r in history]
            self.save_all(data)
