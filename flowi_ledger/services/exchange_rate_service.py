# ==============================================================================
# SERVICIO DE TASA DE CAMBIO
# ==============================================================================
# Mantiene la tasa USD → VES vigente y avisa a los suscriptores cuando cambia.
#
# REGLAS:
# - Una sola tasa vigente; la anterior pasa al historial (se reemplaza,
#   nunca se modifica)
# - set_rate() inválido → InvalidRate, la tasa anterior se conserva
# - Los avisos son síncronos y en orden de suscripción
# - Toda conversión captura el valor de la tasa al empezar: nunca vuelve a
#   leer la tasa vigente a mitad de un cálculo
# ==============================================================================

from datetime import datetime
from typing import Any, Callable, List, Optional

from flowi_ledger.errors import InvalidRate, PersistenceError
from flowi_ledger.models import ExchangeRate, utc_now
from flowi_ledger.repositories.settings_repository import SettingsRepository
from flowi_ledger.services import currency


RateListener = Callable[[ExchangeRate], None]


class ExchangeRateManager:
    """
    Proveedor explícito de la tasa vigente.

    Se pasa a quien necesite convertir; nadie lee la tasa desde una
    variable global del módulo.

    Uso:
        manager = ExchangeRateManager(settings_repo)
        unsubscribe = manager.subscribe(lambda rate: print(rate.usd_to_local))
        manager.set_rate(36.5)
    """

    # Tasas reemplazadas que se conservan
    MAX_HISTORY = 50

    def __init__(self, settings_repo: Optional[SettingsRepository] = None):
        """
        Args:
            settings_repo: Repositorio donde persistir la tasa (opcional)
        """
        self.settings_repo = settings_repo
        self._current: Optional[ExchangeRate] = None
        self._history: List[ExchangeRate] = []
        self._listeners: List[RateListener] = []
        self.last_error: Optional[PersistenceError] = None
        self._load()

    def _load(self) -> None:
        """Carga la tasa guardada; si falla, arranca sin tasa."""
        if self.settings_repo is None:
            return
        try:
            self._current = self.settings_repo.get_exchange_rate()
            self._history = self.settings_repo.get_exchange_rate_history()[:self.MAX_HISTORY]
        except PersistenceError as e:
            self.last_error = e
            print(f"[ERROR] Cargando tasa de cambio: {e}")

    # =========================================================================
    # CONSULTA
    # =========================================================================

    def get_current_rate(self) -> Optional[ExchangeRate]:
        """Tasa vigente o None si nunca se configuró."""
        return self._current

    def get_history(self) -> List[ExchangeRate]:
        """Tasas reemplazadas, más reciente primero."""
        return list(self._history)

    # =========================================================================
    # ACTUALIZACIÓN
    # =========================================================================

    def set_rate(
        self,
        usd_to_local: Any,
        source: str = 'manual',
        now: Optional[datetime] = None
    ) -> ExchangeRate:
        """
        Reemplaza la tasa vigente y avisa a los suscriptores.

        Args:
            usd_to_local: Bolívares por 1 USD (finito y positivo)
            source: Origen de la tasa
            now: Momento de captura (por defecto, ahora en UTC)

        Raises:
            InvalidRate: Si el valor no es finito y positivo
            PersistenceError: Si no se pudo guardar (la tasa anterior se conserva)
        """
        value = currency.validate_rate(usd_to_local)
        new_rate = ExchangeRate(
            usd_to_local=value,
            captured_at=(now or utc_now()).isoformat(),
            source=source or 'manual',
        )

        history = self._history
        if self._current is not None:
            history = ([self._current] + self._history)[:self.MAX_HISTORY]

        if self.settings_repo is not None:
            self.settings_repo.save_exchange_rate(new_rate, history)

        self._current = new_rate
        self._history = history
        print(f"[TASA] Nueva tasa: {value} VES por USD ({new_rate.source})")

        self._notify(new_rate)
        return new_rate

    # =========================================================================
    # SUSCRIPCIONES
    # =========================================================================

    def subscribe(self, listener: RateListener) -> Callable[[], None]:
        """
        Registra un suscriptor.

        Returns:
            Función que cancela la suscripción
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(listener)

        return unsubscribe

    def unsubscribe(self, listener: RateListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify(self, rate: ExchangeRate) -> None:
        # Copia: un suscriptor puede desuscribirse durante el aviso
        for listener in list(self._listeners):
            try:
                listener(rate)
            except Exception as e:
                print(f"[ERROR] Suscriptor de tasa falló ({getattr(listener, '__name__', listener)}): {e}")

    # =========================================================================
    # CONVERSIÓN
    # =========================================================================

    def convert(
        self,
        amount: Any,
        from_currency: Any,
        to_currency: Any,
        rate: Optional[float] = None
    ) -> float:
        """
        Convierte usando la tasa capturada al inicio de la llamada.

        Args:
            rate: Tasa explícita; si no se indica se usa la vigente

        Raises:
            InvalidRate: Si hace falta una tasa y no hay ninguna
        """
        captured = rate
        if captured is None and self._current is not None:
            captured = self._current.usd_to_local

        if currency.normalize_currency(from_currency) != currency.normalize_currency(to_currency) \
                and captured is None:
            raise InvalidRate(None)

        return currency.convert(amount, from_currency, to_currency, captured)

    def current_value(self) -> Optional[float]:
        """Valor numérico de la tasa vigente (para pasarlo a un cálculo)."""
        return self._current.usd_to_local if self._current else None
