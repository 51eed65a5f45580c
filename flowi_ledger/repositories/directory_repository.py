# ==============================================================================
# REPOSITORIO DE DIRECTORIOS (clientes y proveedores, solo lectura)
# ==============================================================================
# Encapsula el acceso a customers.json y suppliers.json.
# El CRUD de clientes/proveedores vive en otro módulo; aquí solo se leen
# para resolver la contraparte de una cuenta.
#
# Si el archivo todavía no existe se crean los datos de ejemplo, igual que
# la primera ejecución de la aplicación.
# ==============================================================================

import os
from typing import Any, Dict, List, Optional

from flowi_ledger.models import Counterparty, CounterpartyType
from flowi_ledger.repositories.base import ListRepository


SAMPLE_CUSTOMERS: List[Dict[str, Any]] = [
    {
        'id': '1',
        'name': 'Empresa ABC C.A.',
        'taxId': 'J-12345678-9',
        'paymentTerms': 30,
        'isActive': True,
    },
    {
        'id': '2',
        'name': 'Comercial XYZ',
        'taxId': 'J-98765432-1',
        'paymentTerms': 15,
        'isActive': True,
    },
]

SAMPLE_SUPPLIERS: List[Dict[str, Any]] = [
    {
        'id': 'supplier-1',
        'name': 'Proveedor Ejemplo 1',
        'rif_ci': 'J-12345678-9',
        'payment_terms_days': 30,
        'is_active': True,
    },
    {
        'id': 'supplier-2',
        'name': 'Proveedor Ejemplo 2',
        'rif_ci': 'J-87654321-0',
        'payment_terms_days': 15,
        'is_active': True,
    },
]


class CounterpartyRepository(ListRepository):
    """Un directorio (clientes o proveedores)."""

    FILE_NAMES = {
        CounterpartyType.CUSTOMER.value: 'customers.json',
        CounterpartyType.SUPPLIER.value: 'suppliers.json',
    }

    SAMPLES = {
        CounterpartyType.CUSTOMER.value: SAMPLE_CUSTOMERS,
        CounterpartyType.SUPPLIER.value: SAMPLE_SUPPLIERS,
    }

    def __init__(self, base_path: str, counterparty_type: str, seed_samples: bool = True):
        self.counterparty_type = CounterpartyType(counterparty_type).value
        self.seed_samples = seed_samples
        file_path = os.path.join(base_path, self.FILE_NAMES[self.counterparty_type])
        super().__init__(file_path)

    def load(self) -> List[Counterparty]:
        """
        Carga el directorio.
        La primera vez (archivo inexistente) guarda y retorna los datos de ejemplo.

        Raises:
            PersistenceError: Si el archivo no se puede leer
        """
        if self.seed_samples and not self.exists():
            samples = [dict(s) for s in self.SAMPLES[self.counterparty_type]]
            self.save_all(samples)
            print(f"[DIRECTORIO] Creados {len(samples)} registros de ejemplo en "
                  f"{os.path.basename(self.file_path)}")
        return [Counterparty.from_dict(c) for c in self.get_all()]


class DirectoryRepository:
    """
    Fachada sobre los dos directorios.

    Expone loadCustomers / loadSuppliers y la búsqueda de una contraparte
    por tipo e ID.
    """

    def __init__(self, base_path: str, seed_samples: bool = True):
        self.customers = CounterpartyRepository(base_path, CounterpartyType.CUSTOMER.value, seed_samples)
        self.suppliers = CounterpartyRepository(base_path, CounterpartyType.SUPPLIER.value, seed_samples)

    def load_customers(self) -> List[Counterparty]:
        return self.customers.load()

    def load_suppliers(self) -> List[Counterparty]:
        return self.suppliers.load()

    def find(self, counterparty_type: str, counterparty_id: str) -> Optional[Counterparty]:
        """Busca una contraparte; None si no existe."""
        source = self.load_suppliers() if counterparty_type == CounterpartyType.SUPPLIER.value \
            else self.load_customers()
        for counterparty in source:
            if counterparty.id == str(counterparty_id):
                return counterparty
        return None
