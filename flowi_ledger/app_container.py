# ==============================================================================
# CONTENEDOR DE DEPENDENCIAS
# ==============================================================================
# Un único punto donde se arman repositorios y servicios sobre una carpeta
# de datos. Cada pieza se construye la primera vez que se pide y se reutiliza
# después; los tests apuntan el contenedor a una carpeta temporal.
#
# La tasa de cambio vive en UN solo ExchangeRateManager por contenedor: los
# servicios que convierten lo reciben por parámetro, nunca leen una global.
# ==============================================================================

import os
from typing import Any, Callable, Dict, Optional

from flowi_ledger.models import ObligationKind
from flowi_ledger.repositories import (
    AuditRepository,
    DirectoryRepository,
    ObligationRepository,
    ProductRepository,
    SalesRepository,
    SettingsRepository,
)
from flowi_ledger.services import (
    AuditService,
    ExchangeRateManager,
    MetricsService,
    ObligationService,
    SalesAnalytics,
)


class AppContainer:
    """
    Arma y guarda las piezas de la aplicación (una instancia por proceso).

        container = AppContainer('/ruta/a/datos')
        container.receivables_service.list_obligations()
        container.exchange_rate_manager.get_current_rate()
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, base_path: str = None, low_stock_threshold: Optional[int] = None):
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._ready = False
            cls._instance = instance
        return cls._instance

    def __init__(self, base_path: str = None, low_stock_threshold: Optional[int] = None):
        # La segunda construcción devuelve el contenedor ya armado sin tocarlo
        if self._ready:
            return
        self._base_path = base_path or os.path.dirname(os.path.abspath(__file__))
        self.low_stock_threshold = low_stock_threshold
        self._built: Dict[str, Any] = {}
        self._ready = True

    def _once(self, key: str, build: Callable[[], Any]) -> Any:
        if key not in self._built:
            self._built[key] = build()
        return self._built[key]

    @property
    def base_path(self) -> str:
        return self._base_path

    # ─── Repositorios ─────────────────────────────────────────────────────────

    @property
    def receivable_repo(self) -> ObligationRepository:
        return self._once('receivable_repo', lambda: ObligationRepository(
            self._base_path, ObligationKind.RECEIVABLE.value))

    @property
    def payable_repo(self) -> ObligationRepository:
        return self._once('payable_repo', lambda: ObligationRepository(
            self._base_path, ObligationKind.PAYABLE.value))

    @property
    def sales_repo(self) -> SalesRepository:
        return self._once('sales_repo', lambda: SalesRepository(self._base_path))

    @property
    def product_repo(self) -> ProductRepository:
        return self._once('product_repo', lambda: ProductRepository(self._base_path))

    @property
    def directory_repo(self) -> DirectoryRepository:
        """Clientes y proveedores; siembra los ejemplos si no hay archivo."""
        return self._once('directory_repo', lambda: DirectoryRepository(self._base_path))

    @property
    def settings_repo(self) -> SettingsRepository:
        return self._once('settings_repo', lambda: SettingsRepository(self._base_path))

    @property
    def audit_repo(self) -> AuditRepository:
        return self._once('audit_repo', lambda: AuditRepository(self._base_path))

    # ─── Servicios ────────────────────────────────────────────────────────────

    @property
    def audit_service(self) -> AuditService:
        return self._once('audit_service', lambda: AuditService(self.audit_repo))

    def _build_rate_manager(self) -> ExchangeRateManager:
        manager = ExchangeRateManager(self.settings_repo)
        # La auditoría es siempre el primer suscriptor
        manager.subscribe(self.audit_service.log_rate_change)
        return manager

    @property
    def exchange_rate_manager(self) -> ExchangeRateManager:
        return self._once('exchange_rate_manager', self._build_rate_manager)

    def _build_obligations(self, kind: ObligationKind, repo: ObligationRepository) -> ObligationService:
        return ObligationService(kind.value, repo, self.directory_repo, self.audit_service)

    @property
    def receivables_service(self) -> ObligationService:
        return self._once('receivables_service', lambda: self._build_obligations(
            ObligationKind.RECEIVABLE, self.receivable_repo))

    @property
    def payables_service(self) -> ObligationService:
        return self._once('payables_service', lambda: self._build_obligations(
            ObligationKind.PAYABLE, self.payable_repo))

    def obligation_service(self, kind: str) -> ObligationService:
        """Servicio de la colección indicada ('receivable' o 'payable')."""
        if ObligationKind(kind) == ObligationKind.PAYABLE:
            return self.payables_service
        return self.receivables_service

    @property
    def analytics(self) -> SalesAnalytics:
        return self._once('analytics', lambda: SalesAnalytics(
            self.sales_repo.load, self.product_repo.load))

    @property
    def metrics_service(self) -> MetricsService:
        """Panel principal: combina cuentas, ventas, inventario y tasa."""
        return self._once('metrics_service', lambda: MetricsService(
            self.sales_repo,
            self.product_repo,
            self.receivables_service,
            self.payables_service,
            self.exchange_rate_manager,
            self.analytics,
            self.low_stock_threshold,
        ))

    # ─── Ciclo de vida ────────────────────────────────────────────────────────

    def reset(self) -> None:
        """Descarta todo lo construido; se vuelve a armar al pedirlo."""
        self._built.clear()

    @classmethod
    def get_instance(cls, base_path: str = None, low_stock_threshold: Optional[int] = None) -> 'AppContainer':
        """La carpeta y el umbral solo cuentan en la primera llamada."""
        return cls._instance or cls(base_path, low_stock_threshold)

    @classmethod
    def reset_instance(cls) -> None:
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


def get_container(base_path: str = None, low_stock_threshold: Optional[int] = None) -> AppContainer:
    return AppContainer.get_instance(base_path, low_stock_threshold)
