# ==============================================================================
# ENTIDADES DEL DOMINIO - Definiciones de dataclasses
# ==============================================================================
# Cada entidad representa un concepto del negocio.
# Diseñadas para ser independientes del mecanismo de persistencia.
#
# REGLA DE MONEDA: todo monto viaja junto a su moneda (USD | VES).
# Un monto nunca se reinterpreta en otra moneda sin una conversión explícita.
# ==============================================================================

from dataclasses import dataclass, field, replace
from typing import Optional, List, Dict, Any
from enum import Enum
import os
from datetime import datetime, date, timezone, tzinfo
from zoneinfo import ZoneInfo


# ==============================================================================
# ENUMERACIONES - Estados y tipos válidos
# ==============================================================================

class Currency(str, Enum):
    """Monedas manejadas por el sistema (dura y local)."""
    USD = "USD"
    VES = "VES"


class ObligationStatus(str, Enum):
    """Estados de una cuenta por cobrar/pagar."""
    PENDING = "pending"      # Pendiente de pago
    OVERDUE = "overdue"      # Vencida (automático, por fecha)
    PAID = "paid"            # Pagada (terminal)
    CANCELLED = "cancelled"  # Cancelada (terminal)


class CounterpartyType(str, Enum):
    """Tipo de contraparte de una cuenta."""
    CUSTOMER = "customer"
    SUPPLIER = "supplier"


class ObligationKind(str, Enum):
    """Colección donde vive la cuenta."""
    RECEIVABLE = "receivable"  # Nos deben
    PAYABLE = "payable"        # Debemos


class PaymentMethod(str, Enum):
    """Métodos de pago aceptados en ventas."""
    USD = "usd"
    VES = "ves"
    ZELLE = "zelle"
    PAGO_MOVIL = "pago_movil"
    MIXED = "mixed"


# Métodos que liquidan en cada moneda
USD_METHODS = frozenset([PaymentMethod.USD.value, PaymentMethod.ZELLE.value])
VES_METHODS = frozenset([PaymentMethod.VES.value, PaymentMethod.PAGO_MOVIL.value])

# Estados terminales: ninguna transición sale de ellos
TERMINAL_STATUSES = frozenset([ObligationStatus.PAID.value, ObligationStatus.CANCELLED.value])

# Máquina de estados: {estado_actual: estados_destino_permitidos}
ALLOWED_TRANSITIONS = {
    ObligationStatus.PENDING.value: frozenset([
        ObligationStatus.OVERDUE.value,
        ObligationStatus.PAID.value,
        ObligationStatus.CANCELLED.value,
    ]),
    ObligationStatus.OVERDUE.value: frozenset([
        ObligationStatus.PAID.value,
        ObligationStatus.CANCELLED.value,
    ]),
    ObligationStatus.PAID.value: frozenset(),
    ObligationStatus.CANCELLED.value: frozenset(),
}

# Etiquetas para mostrar
STATUS_LABELS = {
    ObligationStatus.PENDING.value: 'Pendiente',
    ObligationStatus.OVERDUE.value: 'Vencida',
    ObligationStatus.PAID.value: 'Pagada',
    ObligationStatus.CANCELLED.value: 'Cancelada',
}


# ==============================================================================
# FECHAS
# ==============================================================================

def utc_now() -> datetime:
    """Fecha y hora actual en UTC."""
    return datetime.now(timezone.utc)


def local_zone() -> Optional[tzinfo]:
    """
    Zona del negocio para decidir el día de calendario.

    FLOWI_TIMEZONE acepta un nombre IANA (America/Caracas) o UTC;
    sin definir se usa la zona del sistema (None).
    """
    name = os.environ.get("FLOWI_TIMEZONE", "").strip()
    if not name:
        return None
    if name.upper() in ("UTC", "Z"):
        return timezone.utc
    return ZoneInfo(name)


def local_now() -> datetime:
    """Fecha y hora actual en la zona del negocio (con zona)."""
    return datetime.now(timezone.utc).astimezone(local_zone())


def local_day(moment: Any) -> Optional[date]:
    """
    Día de calendario LOCAL de un instante.

    Los instantes con zona se llevan a local_zone() antes de tomar la fecha;
    los que no tienen zona ya se consideran locales.
    """
    if moment is None or moment == "":
        return None
    if isinstance(moment, date) and not isinstance(moment, datetime):
        return moment
    dt = parse_datetime(moment)
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(local_zone())
    return dt.date()


def parse_datetime(value: Any) -> Optional[datetime]:
    """
    Parsea una fecha ISO (con o sin zona horaria, con 'Z').
    Retorna None si no puede parsear.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except (ValueError, TypeError):
        return None


def parse_date(value: Any) -> Optional[date]:
    """Parsea una fecha de calendario (YYYY-MM-DD o ISO completa)."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    dt = parse_datetime(value)
    return dt.date() if dt else None


def _first(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Primer valor no nulo entre varias claves (snake_case o camelCase legacy)."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return default


def _to_float(value: Any, default: Optional[float] = 0.0) -> Optional[float]:
    if value is None or value == '':
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _to_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# ==============================================================================
# DINERO Y TASA DE CAMBIO
# ==============================================================================

@dataclass(frozen=True)
class MonetaryAmount:
    """Un monto con su moneda. Nunca se suma con otra moneda."""
    amount: float
    currency: Currency

    def to_dict(self) -> Dict[str, Any]:
        return {'amount': self.amount, 'currency': Currency(self.currency).value}


@dataclass(frozen=True)
class ExchangeRate:
    """
    Tasa USD → moneda local vigente en un momento.

    Inmutable: una tasa nueva reemplaza a la anterior, nunca la modifica.

    Attributes:
        usd_to_local: Unidades de moneda local por 1 USD
        captured_at: Momento de captura (ISO)
        source: Origen de la tasa ('manual', 'api', ...)
    """
    usd_to_local: float
    captured_at: str
    source: str = 'manual'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'usd_to_local': self.usd_to_local,
            'captured_at': self.captured_at,
            'source': self.source,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ExchangeRate':
        return cls(
            usd_to_local=float(_first(data, 'usd_to_local', 'usdToVes', 'usdToLocal')),
            captured_at=_first(data, 'captured_at', 'capturedAt', 'lastUpdated', default=''),
            source=data.get('source', 'manual'),
        )


# ==============================================================================
# CONTRAPARTES (clientes y proveedores, solo lectura)
# ==============================================================================

@dataclass
class Counterparty:
    """
    Cliente o proveedor tal como lo expone su directorio.

    Attributes:
        id: Identificador
        name: Nombre o razón social
        is_active: Si puede recibir nuevas cuentas
        payment_terms_days: Plazo de pago habitual (días)
    """
    id: str
    name: str
    is_active: bool = True
    payment_terms_days: int = 30
    tax_id: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'is_active': self.is_active,
            'payment_terms_days': self.payment_terms_days,
            'tax_id': self.tax_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Counterparty':
        """Acepta el formato de clientes (isActive, paymentTerms) y de proveedores (is_active, payment_terms_days)."""
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name', ''),
            is_active=bool(_first(data, 'is_active', 'isActive', default=True)),
            payment_terms_days=_to_int(_first(data, 'payment_terms_days', 'paymentTerms', default=30), 30),
            tax_id=_first(data, 'tax_id', 'taxId', 'rif_ci', default=''),
        )


# ==============================================================================
# CUENTAS POR COBRAR / PAGAR
# ==============================================================================

@dataclass
class Obligation:
    """
    Cuenta por cobrar (nos deben) o por pagar (debemos).

    counterparty_name es una copia del nombre al momento de crear la factura:
    si la contraparte cambia de nombre, la factura conserva el original.

    Attributes:
        id: Identificador único
        counterparty_type: 'customer' o 'supplier'
        counterparty_id: ID de la contraparte
        counterparty_name: Nombre al momento de facturar
        reference_number: Número de factura/documento (único)
        amount: Monto (> 0) en `currency`
        currency: USD o VES
        payment_terms_days: Días de crédito
        due_date: Fecha de vencimiento (YYYY-MM-DD)
        status: pending | overdue | paid | cancelled
        description: Nota opcional
        created_at: Creación (ISO, UTC)
        updated_at: Última modificación (ISO, UTC)
    """
    id: str
    counterparty_type: str
    counterparty_id: str
    counterparty_name: str
    reference_number: str
    amount: float
    currency: str
    payment_terms_days: int
    due_date: str
    status: str = ObligationStatus.PENDING.value
    description: str = ''
    created_at: str = ''
    updated_at: str = ''

    @property
    def is_terminal(self) -> bool:
        """Pagada o cancelada."""
        return self.status in TERMINAL_STATUSES

    @property
    def status_label(self) -> str:
        return STATUS_LABELS.get(self.status, self.status)

    @property
    def due(self) -> Optional[date]:
        return parse_date(self.due_date)

    def with_changes(self, **changes: Any) -> 'Obligation':
        """Copia con campos modificados (la original no se toca)."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia JSON."""
        return {
            'id': self.id,
            'counterparty_type': self.counterparty_type,
            'counterparty_id': self.counterparty_id,
            'counterparty_name': self.counterparty_name,
            'reference_number': self.reference_number,
            'amount': self.amount,
            'currency': self.currency,
            'payment_terms_days': self.payment_terms_days,
            'due_date': self.due_date,
            'status': self.status,
            'description': self.description,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Obligation':
        """
        Crea instancia desde diccionario.
        Soporta el formato legacy (invoice_number, entity_type, customer_id...).
        """
        counterparty_type = _first(data, 'counterparty_type', 'counterpartyType', 'entity_type',
                                   default=CounterpartyType.CUSTOMER.value)
        if counterparty_type == CounterpartyType.SUPPLIER.value:
            legacy_id = _first(data, 'supplier_id', 'supplierId')
            legacy_name = _first(data, 'supplier_name', 'supplierName')
        else:
            legacy_id = _first(data, 'customer_id', 'customerId')
            legacy_name = _first(data, 'customer_name', 'customerName')

        status = data.get('status', ObligationStatus.PENDING.value)
        try:
            status = ObligationStatus(status).value
        except ValueError:
            status = ObligationStatus.PENDING.value

        return cls(
            id=str(data.get('id', '')),
            counterparty_type=counterparty_type,
            counterparty_id=str(_first(data, 'counterparty_id', 'counterpartyId', default=legacy_id) or ''),
            counterparty_name=_first(data, 'counterparty_name', 'counterpartyName', 'entity_name',
                                     default=legacy_name) or '',
            reference_number=_first(data, 'reference_number', 'referenceNumber', 'invoice_number',
                                    'invoiceNumber', default=''),
            amount=_to_float(data.get('amount'), 0.0),
            currency=data.get('currency', Currency.USD.value),
            payment_terms_days=_to_int(_first(data, 'payment_terms_days', 'paymentTermsDays',
                                              'payment_terms', default=0)),
            due_date=(_first(data, 'due_date', 'dueDate', default='') or '')[:10],
            status=status,
            description=data.get('description') or '',
            created_at=_first(data, 'created_at', 'createdAt', default=''),
            updated_at=_first(data, 'updated_at', 'updatedAt', default=''),
        )


# ==============================================================================
# CATÁLOGO Y VENTAS (solo lectura para este núcleo)
# ==============================================================================

@dataclass
class Product:
    """
    Producto del catálogo.

    Attributes:
        id: Identificador
        name: Nombre
        price_usd: Precio en USD
        price_ves: Precio en VES (0 si se calcula con la tasa)
        stock: Unidades en inventario (>= 0)
        reorder_level: Nivel mínimo antes de alerta
    """
    id: str
    name: str
    price_usd: float = 0.0
    price_ves: float = 0.0
    stock: int = 0
    reorder_level: int = 5
    description: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'price_usd': self.price_usd,
            'price_ves': self.price_ves,
            'stock': self.stock,
            'reorder_level': self.reorder_level,
            'description': self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        return cls(
            id=str(data.get('id', '')),
            name=data.get('name', ''),
            price_usd=_to_float(_first(data, 'price_usd', 'priceUSD')),
            price_ves=_to_float(_first(data, 'price_ves', 'priceVES')),
            stock=max(0, _to_int(data.get('stock'))),
            reorder_level=_to_int(_first(data, 'reorder_level', 'reorderLevel', default=5), 5),
            description=data.get('description') or '',
        )


@dataclass
class SaleItem:
    """Línea de una venta."""
    product_id: str
    product_name: str
    quantity: int
    price_usd: float = 0.0
    price_ves: float = 0.0

    @property
    def line_total_usd(self) -> float:
        return self.quantity * self.price_usd

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'product_name': self.product_name,
            'quantity': self.quantity,
            'price_usd': self.price_usd,
            'price_ves': self.price_ves,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SaleItem':
        return cls(
            product_id=str(_first(data, 'product_id', 'productId', default='')),
            product_name=_first(data, 'product_name', 'productName', default=''),
            quantity=_to_int(data.get('quantity'), 0),
            price_usd=_to_float(_first(data, 'price_usd', 'priceUSD')),
            price_ves=_to_float(_first(data, 'price_ves', 'priceVES')),
        )


@dataclass
class SalesRecord:
    """
    Venta registrada.

    Según el método de pago solo algunos campos son significativos:
    - usd / zelle        → total_usd
    - ves / pago_movil   → total_ves
    - mixed              → paid_usd + paid_ves

    total_usd es None cuando la venta solo registró monto en VES.
    """
    id: str
    payment_method: str
    created_at: str
    total_usd: Optional[float] = None
    total_ves: Optional[float] = None
    paid_usd: Optional[float] = None
    paid_ves: Optional[float] = None
    items: List[SaleItem] = field(default_factory=list)
    customer_name: str = ''

    @property
    def timestamp(self) -> Optional[datetime]:
        return parse_datetime(self.created_at)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'payment_method': self.payment_method,
            'created_at': self.created_at,
            'total_usd': self.total_usd,
            'total_ves': self.total_ves,
            'paid_usd': self.paid_usd,
            'paid_ves': self.paid_ves,
            'items': [item.to_dict() for item in self.items],
            'customer_name': self.customer_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SalesRecord':
        """Acepta el formato del diario de ventas original (camelCase) y snake_case."""
        return cls(
            id=str(data.get('id', '')),
            payment_method=(_first(data, 'payment_method', 'paymentMethod', default='') or '').lower(),
            created_at=_first(data, 'created_at', 'createdAt', 'ts', default=''),
            total_usd=_to_float(_first(data, 'total_usd', 'totalUSD'), None),
            total_ves=_to_float(_first(data, 'total_ves', 'totalVES'), None),
            paid_usd=_to_float(_first(data, 'paid_usd', 'paidUSD'), None),
            paid_ves=_to_float(_first(data, 'paid_ves', 'paidVES'), None),
            items=[SaleItem.from_dict(i) for i in data.get('items', []) or []],
            customer_name=_first(data, 'customer_name', 'customerName', default='') or '',
        )


# ==============================================================================
# ENTIDADES DE AUDITORÍA
# ==============================================================================

@dataclass
class AuditLog:
    """
    Registro de auditoría.

    Attributes:
        type: Tipo de evento (CUENTA, ESTADO, TASA, SISTEMA)
        user: Usuario que realizó la acción
        message: Mensaje descriptivo humanizado
        timestamp: Fecha y hora del evento
        related_id: ID relacionado (factura, tasa...)
        details: Detalles adicionales
    """
    type: str
    user: str
    message: str
    timestamp: str = ''
    related_id: str = ''
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not self.timestamp:
            self.timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

    def to_dict(self) -> Dict[str, Any]:
        """Convierte a diccionario para persistencia."""
        return {
            'type': self.type,
            'user': self.user,
            'message': self.message,
            'timestamp': self.timestamp,
            'related_id': self.related_id,
            'details': self.details
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AuditLog':
        """Crea instancia desde diccionario."""
        return cls(
            type=data.get('type', ''),
            user=data.get('user', ''),
            message=data.get('message', ''),
            timestamp=data.get('timestamp', ''),
            related_id=data.get('related_id', ''),
            details=data.get('details', {})
        )
