# ==============================================================================
# CAPA DE REPOSITORIOS - Acceso a datos
# ==============================================================================
# Esta capa encapsula todo el acceso a la persistencia (archivos JSON).
# Las interfaces (métodos públicos) no cambian si cambia el almacenamiento.
#
# ESTRUCTURA:
# ├── interfaces.py             → Protocolos/Interfaces
# ├── base.py                   → Clases base para JSON (DictRepository, ListRepository)
# ├── obligation_repository.py  → receivables.json / payables.json
# ├── sales_repository.py       → sales.json (solo lectura)
# ├── product_repository.py     → products.json (solo lectura)
# ├── directory_repository.py   → customers.json / suppliers.json (solo lectura)
# ├── audit_repository.py       → audit.json
# └── settings_repository.py    → settings.json (tasa de cambio)
# ==============================================================================

# Interfaces
from .interfaces import (
    IObligationRepository,
    ISalesRepository,
    IProductRepository,
    IDirectoryRepository,
    ISettingsRepository,
    IAuditRepository,
)

# Implementaciones concretas (JSON)
from .base import BaseRepository, DictRepository, ListRepository
from .obligation_repository import ObligationRepository
from .sales_repository import SalesRepository
from .product_repository import ProductRepository
from .directory_repository import DirectoryRepository, CounterpartyRepository
from .audit_repository import AuditRepository
from .settings_repository import SettingsRepository

__all__ = [
    # Interfaces
    'IObligationRepository',
    'ISalesRepository',
    'IProductRepository',
    'IDirectoryRepository',
    'ISettingsRepository',
    'IAuditRepository',

    # Clases base
    'BaseRepository',
    'DictRepository',
    'ListRepository',

    # Implementaciones JSON
    'ObligationRepository',
    'SalesRepository',
    'ProductRepository',
    'DirectoryRepository',
    'CounterpartyRepository',
    'AuditRepository',
    'SettingsRepository',
]
