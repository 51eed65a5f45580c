# ==============================================================================
# INTERFACES DE REPOSITORIOS
# ==============================================================================
#
# Contratos que cumplen los repositorios JSON. Los servicios dependen de
# estas interfaces, no de los archivos:
#
# 1. INDEPENDENCIA DE ALMACENAMIENTO
#    - Cambiar JSON → otra base de datos solo requiere nueva implementación
#
# 2. TESTING
#    - Fácil crear dobles en memoria que implementen estas interfaces
#
# Semántica: lectura y reemplazo de la colección completa, sin parches.
# Todas las operaciones pueden lanzar PersistenceError.
#
# ==============================================================================

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from flowi_ledger.models import Counterparty, ExchangeRate, Obligation, Product, SalesRecord


@runtime_checkable
class IObligationRepository(Protocol):
    """loadObligations(kind) / saveObligations(kind, list)."""

    kind: str

    def load(self) -> List[Obligation]:
        """Carga la colección completa."""
        ...

    def save(self, obligations: List[Obligation]) -> None:
        """Reemplaza la colección completa."""
        ...


@runtime_checkable
class ISalesRepository(Protocol):
    """loadSales() - solo lectura."""

    def load(self) -> List[SalesRecord]:
        ...


@runtime_checkable
class IProductRepository(Protocol):
    """loadProducts() - solo lectura."""

    def load(self) -> List[Product]:
        ...


@runtime_checkable
class IDirectoryRepository(Protocol):
    """loadCustomers() / loadSuppliers()."""

    def load_customers(self) -> List[Counterparty]:
        ...

    def load_suppliers(self) -> List[Counterparty]:
        ...


@runtime_checkable
class ISettingsRepository(Protocol):
    """Persistencia de la tasa vigente y su historial."""

    def get_exchange_rate(self) -> Optional[ExchangeRate]:
        ...

    def get_exchange_rate_history(self) -> List[ExchangeRate]:
        ...

    def save_exchange_rate(self, rate: ExchangeRate, history: List[ExchangeRate]) -> None:
        ...


@runtime_checkable
class IAuditRepository(Protocol):
    """Registro de auditoría."""

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        ...

    def search_logs(self, query: str = '', log_type: str = None,
                    related_id: str = None) -> List[Dict[str, Any]]:
        ...
