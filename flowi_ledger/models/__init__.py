# ==============================================================================
# CAPA DE MODELOS - Estructuras de datos del sistema
# ==============================================================================
# Este módulo define todas las entidades del dominio usando dataclasses.
# Beneficios:
#   - Type hints para mejor documentación y autocompletado
#   - Fácil serialización/deserialización para JSON
#   - Independiente del mecanismo de persistencia
# ==============================================================================

from .entities import (
    # Monedas
    Currency,
    MonetaryAmount,
    ExchangeRate,

    # Cuentas por cobrar / pagar
    Obligation,
    ObligationStatus,
    ObligationKind,
    CounterpartyType,
    Counterparty,
    STATUS_LABELS,
    TERMINAL_STATUSES,
    ALLOWED_TRANSITIONS,

    # Catálogo y ventas
    Product,
    SaleItem,
    SalesRecord,
    PaymentMethod,
    USD_METHODS,
    VES_METHODS,

    # Auditoría
    AuditLog,

    # Fechas
    utc_now,
    local_now,
    local_day,
    local_zone,
    parse_datetime,
    parse_date,
)

__all__ = [
    # Monedas
    'Currency',
    'MonetaryAmount',
    'ExchangeRate',

    # Cuentas
    'Obligation',
    'ObligationStatus',
    'ObligationKind',
    'CounterpartyType',
    'Counterparty',
    'STATUS_LABELS',
    'TERMINAL_STATUSES',
    'ALLOWED_TRANSITIONS',

    # Ventas
    'Product',
    'SaleItem',
    'SalesRecord',
    'PaymentMethod',
    'USD_METHODS',
    'VES_METHODS',

    # Auditoría
    'AuditLog',

    # Fechas
    'utc_now',
    'local_now',
    'local_day',
    'local_zone',
    'parse_datetime',
    'parse_date',
]
