# ==============================================================================
# REPOSITORIO DE VENTAS (solo lectura)
# ==============================================================================
# Encapsula el acceso a sales.json
# Las ventas se almacenan como lista: [{venta1}, {venta2}, ...]
# Este núcleo nunca escribe ventas: el módulo de caja es el dueño del diario.
# ==============================================================================

import os
from typing import List, Optional

from flowi_ledger.models import SalesRecord, parse_datetime
from flowi_ledger.repositories.base import ListRepository


class SalesRepository(ListRepository):
    """
    Repositorio del diario de ventas.

    Formato de datos en sales.json (acepta camelCase del diario original):
    [
        {
            "id": "s1",
            "paymentMethod": "mixed",
            "totalUSD": 30.0,
            "totalVES": 1095.0,
            "paidUSD": 20.0,
            "paidVES": 500.0,
            "createdAt": "2024-01-01T10:00:00Z",
            "items": [{"productId": "p1", "productName": "...", "quantity": 1, "priceUSD": 30.0}]
        }
    ]
    """

    def __init__(self, base_path: str):
        """
        Args:
            base_path: Carpeta de datos
        """
        file_path = os.path.join(base_path, 'sales.json')
        super().__init__(file_path)

    def load(self) -> List[SalesRecord]:
        """
        Carga todas las ventas.

        Raises:
            PersistenceError: Si el archivo no se puede leer
        """
        return [SalesRecord.from_dict(s) for s in self.get_all()]

    def get_sales_by_date_range(
        self,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None
    ) -> List[SalesRecord]:
        """
        Obtiene ventas en un rango de fechas (ISO, inclusivo).
        Las ventas sin fecha legible se descartan.
        """
        sales = self.load()

        if not from_date and not to_date:
            return sales

        from_dt = parse_datetime(from_date) if from_date else None
        to_dt = parse_datetime(to_date) if to_date else None

        filtered = []
        for sale in sales:
            dt = sale.timestamp
            if dt is None:
                continue
            # Comparar sin zona si alguno de los extremos no la tiene
            if (from_dt and from_dt.tzinfo is None) or (to_dt and to_dt.tzinfo is None):
                dt = dt.replace(tzinfo=None)
            elif dt.tzinfo is None:
                dt = dt.replace(tzinfo=(from_dt or to_dt).tzinfo)
            if from_dt and dt < from_dt:
                continue
            if to_dt and dt > to_dt:
                continue
            filtered.append(sale)

        return filtered
