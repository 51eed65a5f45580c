# ==============================================================================
# CAPA DE SERVICIOS - Lógica de negocio
# ==============================================================================
# Esta capa contiene TODA la lógica de negocio del libro contable.
#
# PRINCIPIOS:
# 1. Los servicios orquestan operaciones entre repositorios
# 2. Aplican reglas de negocio y validaciones
# 3. Las rutas (controllers) solo llaman a servicios
# 4. Los cálculos son funciones puras: reciben tasa, fecha y datos por parámetro
#
# ESTRUCTURA:
# ├── currency.py               → Conversión USD/VES, redondeo y formato
# ├── exchange_rate_service.py  → Tasa vigente, historial y suscriptores
# ├── obligation_service.py     → Cuentas por cobrar/pagar, vencimientos
# ├── stats_service.py          → Analítica de ventas e inventario
# ├── metrics_service.py        → Foto del panel principal
# └── audit_service.py          → Logs de actividad
# ==============================================================================

from flowi_ledger.services.audit_service import AuditService
from flowi_ledger.services.exchange_rate_service import ExchangeRateManager
from flowi_ledger.services.obligation_service import ObligationService
from flowi_ledger.services.stats_service import SalesAnalytics
from flowi_ledger.services.metrics_service import MetricsService, build_dashboard_snapshot

__all__ = [
    'AuditService',
    'ExchangeRateManager',
    'ObligationService',
    'SalesAnalytics',
    'MetricsService',
    'build_dashboard_snapshot',
]
