# ==============================================================================
# SERVICIO DE MÉTRICAS DEL PANEL PRINCIPAL
# ==============================================================================
# Recombina ventas, inventario, cuentas y tasa en la foto que muestra el panel.
#
# No guarda estado propio ni caché: cada llamada relee todas las entradas,
# así que un cambio de ventas, productos, cuentas o tasa se ve en la
# siguiente consulta sin invalidar nada.
# ==============================================================================

from datetime import datetime
from typing import Any, Dict, List, Optional

from flowi_ledger.errors import PersistenceError
from flowi_ledger.models import ExchangeRate, Obligation, ObligationStatus, Product, SalesRecord, local_now
from flowi_ledger.performance_logger import profile_function
from flowi_ledger.services.obligation_service import outstanding_totals, reconcile_overdue
from flowi_ledger.services.stats_service import SalesAnalytics


def _obligation_summary(obligations: List[Obligation], now: datetime) -> Dict[str, Any]:
    reconciled, _ = reconcile_overdue(obligations, now)
    totals = outstanding_totals(reconciled)
    return {
        'pending': totals['pending'],
        'overdue': totals['overdue'],
        'outstanding': totals['outstanding'],
        'overdue_count': sum(1 for o in reconciled if o.status == ObligationStatus.OVERDUE.value),
        'pending_count': sum(1 for o in reconciled if o.status == ObligationStatus.PENDING.value),
    }


@profile_function(name="Armar panel principal")
def build_dashboard_snapshot(
    sales: List[SalesRecord],
    products: List[Product],
    receivables: List[Obligation],
    payables: List[Obligation],
    rate: Optional[ExchangeRate],
    now: datetime,
    low_stock_threshold: Optional[int] = None,
    analytics: SalesAnalytics = None
) -> Dict[str, Any]:
    """
    Foto del panel principal a partir de entradas explícitas.

    Las cuentas se reconcilian contra `now` aquí mismo: los totales vencidos
    son correctos aunque la lista recibida esté desactualizada.

    Returns:
        {
            'today': {'USD', 'VES', 'count'},
            'inventory': {'usd', 'ves', 'products', 'low_stock', 'out_of_stock'},
            'receivables': {'pending', 'overdue', 'outstanding', 'overdue_count', 'pending_count'},
            'payables': {...},
            'payment_methods': {'usd', 'ves', 'mixed', 'total'},
            'revenue': {'usd', 'ves_unconverted', 'sales_without_usd', 'monthly'},
            'exchange_rate': {'usd_to_local', 'captured_at', 'source'} | None,
            'generated_at': str
        }
    """
    analytics = analytics or SalesAnalytics()
    rate_value = rate.usd_to_local if rate else None

    valuation = analytics.inventory_valuation(products, rate_value)
    revenue = analytics.total_revenue(sales)
    revenue['monthly'] = analytics.monthly_comparison(sales, now)

    return {
        'today': analytics.revenue_today_split_by_currency(sales, now),
        'inventory': {
            'usd': valuation['usd'],
            'ves': valuation['ves'],
            'products': len(products),
            'low_stock': len(analytics.low_stock_products(products, low_stock_threshold)),
            'out_of_stock': len(analytics.out_of_stock_products(products)),
        },
        'receivables': _obligation_summary(receivables, now),
        'payables': _obligation_summary(payables, now),
        'payment_methods': analytics.payment_method_counts(sales),
        'revenue': revenue,
        'exchange_rate': rate.to_dict() if rate else None,
        'generated_at': now.isoformat(),
    }


class MetricsService:
    """
    Servicio que arma el panel leyendo cada fuente en el momento.

    Las fuentes que no se pueden leer se reportan como vacías (y quedan
    anotadas en 'warnings'), el panel nunca falla por un archivo dañado.
    """

    def __init__(
        self,
        sales_repo,
        product_repo,
        receivables_service,
        payables_service,
        exchange_rate_manager,
        analytics: SalesAnalytics = None,
        low_stock_threshold: Optional[int] = None
    ):
        self.sales_repo = sales_repo
        self.product_repo = product_repo
        self.receivables_service = receivables_service
        self.payables_service = payables_service
        self.exchange_rate_manager = exchange_rate_manager
        self.analytics = analytics or SalesAnalytics()
        self.low_stock_threshold = low_stock_threshold
        self.last_rate_notification: Optional[str] = None

        # Solo anota cuándo llegó la última tasa; no hay foto que invalidar
        self.exchange_rate_manager.subscribe(self._on_rate_change)

    def _on_rate_change(self, rate: ExchangeRate) -> None:
        self.last_rate_notification = rate.captured_at

    def _read(self, label: str, loader, warnings: List[str]) -> list:
        try:
            return loader()
        except PersistenceError as e:
            print(f"[ERROR] Panel: no se pudo leer {label}: {e}")
            warnings.append(label)
            return []

    def get_dashboard(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Foto del panel recalculada desde cero."""
        now = now or local_now()
        warnings: List[str] = []

        sales = self._read('sales', self.sales_repo.load, warnings)
        products = self._read('products', self.product_repo.load, warnings)
        receivables = self.receivables_service.list_obligations(now)
        payables = self.payables_service.list_obligations(now)
        for label, service in (('receivables', self.receivables_service), ('payables', self.payables_service)):
            if service.last_error is not None:
                warnings.append(label)

        snapshot = build_dashboard_snapshot(
            sales, products, receivables, payables,
            self.exchange_rate_manager.get_current_rate(), now,
            low_stock_threshold=self.low_stock_threshold,
            analytics=self.analytics,
        )
        snapshot['warnings'] = warnings
        return snapshot
