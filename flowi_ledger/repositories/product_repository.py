# ==============================================================================
# REPOSITORIO DE PRODUCTOS (solo lectura)
# ==============================================================================
# Encapsula el acceso a products.json
# El catálogo se administra en otro módulo; aquí solo se lee para valorar
# el inventario y detectar productos con stock bajo.
# ==============================================================================

import os
from typing import List

from flowi_ledger.models import Product
from flowi_ledger.repositories.base import ListRepository


class ProductRepository(ListRepository):
    """
    Repositorio del catálogo de productos.

    Formato de datos en products.json:
    [
        {"id": "p1", "name": "Harina PAN", "priceUSD": 1.2, "priceVES": 0,
         "stock": 40, "reorderLevel": 5}
    ]
    """

    def __init__(self, base_path: str):
        """
        Args:
            base_path: Carpeta de datos
        """
        file_path = os.path.join(base_path, 'products.json')
        super().__init__(file_path)

    def load(self) -> List[Product]:
        """
        Carga el catálogo completo.

        Raises:
            PersistenceError: Si el archivo no se puede leer
        """
        return [Product.from_dict(p) for p in self.get_all()]

    def search_by_name(self, query: str) -> List[Product]:
        """Busca productos por nombre o descripción (sin distinguir mayúsculas)."""
        query_lower = (query or '').lower()
        if not query_lower:
            return self.load()
        return [
            p for p in self.load()
            if query_lower in p.name.lower() or query_lower in p.description.lower()
        ]
