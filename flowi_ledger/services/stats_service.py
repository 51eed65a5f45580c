# ==============================================================================
# SERVICIO DE ANALÍTICA DE VENTAS E INVENTARIO
# ==============================================================================
# Convierte el diario de ventas y el catálogo en agregados para decidir.
#
# REGLA PRINCIPAL: se reporta en la moneda en que se liquidó cada venta.
# - usd / zelle       → total_usd al balde USD
# - ves / pago_movil  → total_ves al balde VES
# - mixed             → paid_usd al balde USD y paid_ves al balde VES
# Una venta histórica NUNCA se convierte con la tasa de hoy: si solo tiene
# total en VES se reporta aparte, no se transforma en USD.
#
# El inventario sí se valora con la tasa vigente (es una foto del momento).
# ==============================================================================

from typing import Any, Callable, Dict, List, Optional
from datetime import date, datetime, timedelta
from collections import defaultdict

from flowi_ledger.models import (
    Currency,
    PaymentMethod,
    Product,
    SalesRecord,
    USD_METHODS,
    VES_METHODS,
    local_day,
    local_now,
)
from flowi_ledger.performance_logger import profile_function


def _previous_month(day: date) -> date:
    first = day.replace(day=1)
    return (first - timedelta(days=1)).replace(day=1)


class SalesAnalytics:
    """
    Motor de analítica de ventas e inventario.

    Todos los cálculos reciben sus datos por parámetro (no leen archivos ni
    tasa global). Los loaders solo se usan en get_analytics_data cuando no
    se pasan las listas explícitamente.
    """

    DEFAULT_TOP_PRODUCTS = 5
    DEFAULT_TREND_DAYS = 7

    def __init__(
        self,
        sales_loader: Callable[[], List[SalesRecord]] = None,
        products_loader: Callable[[], List[Product]] = None
    ):
        """
        Args:
            sales_loader: Función que retorna la lista de ventas.
            products_loader: Función que retorna el catálogo.
                             Permiten inyectar dependencias para testing.
        """
        self._sales_loader = sales_loader
        self._products_loader = products_loader

    def _load_sales(self) -> List[SalesRecord]:
        return self._sales_loader() if self._sales_loader else []

    def _load_products(self) -> List[Product]:
        return self._products_loader() if self._products_loader else []

    # =========================================================================
    # INGRESOS
    # =========================================================================

    def total_revenue(self, sales: List[SalesRecord]) -> Dict[str, Any]:
        """
        Ingreso total en USD tomado solo de total_usd.

        Returns:
            {
                'usd': float,               # Suma de total_usd
                'ves_unconverted': float,   # Suma de total_ves de ventas sin total_usd
                'sales_without_usd': int,   # Cuántas ventas no tienen total_usd
            }
        """
        usd = 0.0
        ves_unconverted = 0.0
        without_usd = 0
        for sale in sales:
            if sale.total_usd is not None:
                usd += sale.total_usd
            else:
                without_usd += 1
                ves_unconverted += sale.total_ves or 0.0
        return {
            'usd': usd,
            'ves_unconverted': ves_unconverted,
            'sales_without_usd': without_usd,
        }

    @staticmethod
    def settled_amounts(sale: SalesRecord) -> Dict[str, float]:
        """Lo que una venta aportó a cada moneda según su método de pago."""
        method = sale.payment_method
        if method in USD_METHODS:
            return {Currency.USD.value: sale.total_usd or 0.0, Currency.VES.value: 0.0}
        if method in VES_METHODS:
            return {Currency.USD.value: 0.0, Currency.VES.value: sale.total_ves or 0.0}
        if method == PaymentMethod.MIXED.value:
            return {Currency.USD.value: sale.paid_usd or 0.0, Currency.VES.value: sale.paid_ves or 0.0}
        return {Currency.USD.value: 0.0, Currency.VES.value: 0.0}

    def revenue_today_split_by_currency(self, sales: List[SalesRecord], now: datetime) -> Dict[str, Any]:
        """
        Ventas del día de calendario LOCAL de `now`, separadas por moneda.
        Ventas y `now` se comparan en la zona de local_zone().

        Returns:
            {'USD': float, 'VES': float, 'count': int}
        """
        today = local_day(now)
        result = {Currency.USD.value: 0.0, Currency.VES.value: 0.0, 'count': 0}
        for sale in sales:
            if local_day(sale.timestamp) != today:
                continue
            settled = self.settled_amounts(sale)
            result[Currency.USD.value] += settled[Currency.USD.value]
            result[Currency.VES.value] += settled[Currency.VES.value]
            result['count'] += 1
        return result

    @profile_function(name="Comparar ventas mes actual vs anterior")
    def monthly_comparison(self, sales: List[SalesRecord], now: datetime) -> Dict[str, float]:
        """
        Ingreso USD del mes calendario actual contra el anterior.

        growth = (actual - anterior) / anterior, y 0 si el anterior es 0.
        """
        this_month = local_day(now).replace(day=1)
        last_month = _previous_month(this_month)

        current = 0.0
        previous = 0.0
        for sale in sales:
            if sale.total_usd is None:
                continue
            day = local_day(sale.timestamp)
            if day is None:
                continue
            month = day.replace(day=1)
            if month == this_month:
                current += sale.total_usd
            elif month == last_month:
                previous += sale.total_usd

        growth = (current - previous) / previous if previous else 0.0
        return {'current': current, 'previous': previous, 'growth': growth}

    @profile_function(name="Tendencia de ventas")
    def sales_trend(self, sales: List[SalesRecord], now: datetime, days: int = None) -> List[Dict[str, Any]]:
        """
        Ingreso USD y cantidad de ventas por día (los últimos `days` días,
        incluyendo hoy). Los días sin ventas aparecen en 0.
        """
        days = days or self.DEFAULT_TREND_DAYS
        today = local_day(now)
        start = today - timedelta(days=days - 1)

        daily_data = defaultdict(lambda: {'usd': 0.0, 'count': 0})
        for sale in sales:
            day = local_day(sale.timestamp)
            if day is None or day < start or day > today:
                continue
            daily_data[day]['usd'] += sale.total_usd or 0.0
            daily_data[day]['count'] += 1

        trend = []
        for offset in range(days):
            day = start + timedelta(days=offset)
            data = daily_data.get(day, {'usd': 0.0, 'count': 0})
            trend.append({'date': day.isoformat(), 'usd': round(data['usd'], 2), 'count': data['count']})
        return trend

    def average_order_value(self, sales: List[SalesRecord]) -> float:
        """Promedio de total_usd entre las ventas que lo tienen."""
        totals = [s.total_usd for s in sales if s.total_usd is not None]
        return sum(totals) / len(totals) if totals else 0.0

    def payment_method_counts(self, sales: List[SalesRecord]) -> Dict[str, int]:
        """
        Cantidad de ventas por familia de método.

        Returns:
            {'usd': usd+zelle, 'ves': ves+pago_movil, 'mixed': int, 'total': int}
        """
        counts = {'usd': 0, 'ves': 0, 'mixed': 0, 'total': len(sales)}
        for sale in sales:
            if sale.payment_method in USD_METHODS:
                counts['usd'] += 1
            elif sale.payment_method in VES_METHODS:
                counts['ves'] += 1
            elif sale.payment_method == PaymentMethod.MIXED.value:
                counts['mixed'] += 1
        return counts

    @profile_function(name="Productos más vendidos")
    def top_products(self, sales: List[SalesRecord], n: int = None) -> List[Dict[str, Any]]:
        """
        Productos ordenados por ingreso realizado (cantidad × precio USD).
        Empates: ID de producto ascendente.
        """
        n = self.DEFAULT_TOP_PRODUCTS if n is None else n
        if n <= 0:
            return []

        product_revenue = defaultdict(lambda: {'name': '', 'quantity': 0, 'revenue': 0.0})
        for sale in sales:
            for item in sale.items:
                data = product_revenue[item.product_id]
                data['name'] = data['name'] or item.product_name
                data['quantity'] += item.quantity
                data['revenue'] += item.line_total_usd

        ranking = [
            {'product_id': product_id, 'name': data['name'],
             'quantity': data['quantity'], 'revenue': data['revenue']}
            for product_id, data in product_revenue.items()
        ]
        ranking.sort(key=lambda x: (-x['revenue'], x['product_id']))
        return ranking[:n]

    # =========================================================================
    # INVENTARIO
    # =========================================================================

    def low_stock_products(self, products: List[Product], threshold: Optional[int] = None) -> List[Product]:
        """
        Productos con 0 < stock <= umbral.
        Sin umbral se usa el reorder_level de cada producto.
        Stock 0 es "agotado", no "stock bajo".
        """
        return [
            p for p in products
            if 0 < p.stock <= (p.reorder_level if threshold is None else threshold)
        ]

    def out_of_stock_products(self, products: List[Product]) -> List[Product]:
        return [p for p in products if p.stock == 0]

    def inventory_value(self, products: List[Product]) -> float:
        """Σ price_usd × stock."""
        return sum(p.price_usd * p.stock for p in products)

    def inventory_valuation(self, products: List[Product], rate: Optional[float]) -> Dict[str, Optional[float]]:
        """
        Valor del inventario en ambas monedas.
        VES = USD × tasa vigente (None si no hay tasa).
        """
        usd = self.inventory_value(products)
        return {
            'usd': usd,
            'ves': usd * rate if rate else None,
        }

    # =========================================================================
    # RESUMEN
    # =========================================================================

    @profile_function(name="Analítica de ventas")
    def get_analytics_data(
        self,
        sales: List[SalesRecord] = None,
        products: List[Product] = None,
        now: datetime = None,
        rate: Optional[float] = None,
        low_stock_threshold: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Resumen completo para la pantalla de analítica.

        Returns:
            {
                'revenue': {...total_revenue...},
                'today': {'USD', 'VES', 'count'},
                'monthly': {'current', 'previous', 'growth'},
                'average_order_value': float,
                'payment_methods': {'usd', 'ves', 'mixed', 'total'},
                'top_products': [...],
                'sales_trend': [...],
                'inventory': {'usd', 'ves', 'products', 'low_stock', 'out_of_stock'}
            }
        """
        sales = self._load_sales() if sales is None else sales
        products = self._load_products() if products is None else products
        now = now or local_now()

        valuation = self.inventory_valuation(products, rate)
        return {
            'revenue': self.total_revenue(sales),
            'today': self.revenue_today_split_by_currency(sales, now),
            'monthly': self.monthly_comparison(sales, now),
            'average_order_value': self.average_order_value(sales),
            'payment_methods': self.payment_method_counts(sales),
            'top_products': self.top_products(sales),
            'sales_trend': self.sales_trend(sales, now),
            'inventory': {
                'usd': valuation['usd'],
                'ves': valuation['ves'],
                'products': len(products),
                'low_stock': [p.to_dict() for p in self.low_stock_products(products, low_stock_threshold)],
                'out_of_stock': [p.to_dict() for p in self.out_of_stock_products(products)],
            },
        }
