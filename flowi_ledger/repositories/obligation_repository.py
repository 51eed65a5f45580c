# ==============================================================================
# REPOSITORIO DE CUENTAS POR COBRAR / PAGAR
# ==============================================================================
# Encapsula el acceso a receivables.json y payables.json.
# Cada archivo es una lista completa: [{cuenta1}, {cuenta2}, ...]
# El servicio calcula la colección nueva completa antes de guardar.
# ==============================================================================

import os
from typing import List

from flowi_ledger.models import Obligation, ObligationKind
from flowi_ledger.repositories.base import ListRepository


class ObligationRepository(ListRepository):
    """
    Repositorio de cuentas (una instancia por tipo de colección).

    Formato de datos:
    [
        {
            "id": "3f2a...",
            "counterparty_type": "customer",
            "counterparty_id": "1",
            "counterparty_name": "Empresa ABC C.A.",
            "reference_number": "INV-20240101-001",
            "amount": 100.0,
            "currency": "USD",
            "payment_terms_days": 30,
            "due_date": "2024-01-31",
            "status": "pending",
            ...
        }
    ]
    """

    FILE_NAMES = {
        ObligationKind.RECEIVABLE.value: 'receivables.json',
        ObligationKind.PAYABLE.value: 'payables.json',
    }

    def __init__(self, base_path: str, kind: str = ObligationKind.RECEIVABLE.value):
        """
        Args:
            base_path: Carpeta de datos
            kind: 'receivable' o 'payable'
        """
        self.kind = ObligationKind(kind).value
        file_path = os.path.join(base_path, self.FILE_NAMES[self.kind])
        super().__init__(file_path)

    def load(self) -> List[Obligation]:
        """
        Carga la colección completa.

        Raises:
            PersistenceError: Si el archivo no se puede leer
        """
        return [Obligation.from_dict(record) for record in self.get_all()]

    def save(self, obligations: List[Obligation]) -> None:
        """Reemplaza la colección completa."""
        self.save_all([o.to_dict() for o in obligations])
