# ==============================================================================
# SERVICIO DE CUENTAS POR COBRAR / PAGAR
# ==============================================================================
# Centraliza la lógica de negocio de las cuentas (obligaciones).
#
# DOS CAPAS:
# 1. Funciones puras (sin estado global, todo entra por parámetro):
#    validación, vencimiento, máquina de estados, totales, filtros.
# 2. ObligationService: orquesta repositorio + funciones puras + auditoría.
#
# REGLAS:
# - Toda cuenta nueva nace 'pending'
# - due_date = fecha de created_at + días de crédito (se congela al crear)
# - Al editar, due_date se recalcula desde el created_at ORIGINAL
# - pending → overdue es automático (reconcile_overdue), nunca manual
# - paid y cancelled son terminales
# - Editar nunca devuelve una cuenta vencida a pendiente
# - Vence el día siguiente a due_date: el mismo día NO está vencida
# - Nunca se suman montos de monedas distintas
# ==============================================================================

import math
import os
import threading
import uuid
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from flowi_ledger.errors import InvalidTransition, PersistenceError, ValidationError
from flowi_ledger.models import (
    ALLOWED_TRANSITIONS,
    Counterparty,
    CounterpartyType,
    Currency,
    Obligation,
    ObligationKind,
    ObligationStatus,
    parse_date,
    local_day,
    parse_datetime,
    utc_now,
)
from flowi_ledger.repositories.directory_repository import DirectoryRepository
from flowi_ledger.repositories.obligation_repository import ObligationRepository
from flowi_ledger.services.audit_service import AuditService


DEFAULT_PAYMENT_TERMS = 30
REFERENCE_PREFIX = 'INV'


# ==============================================================================
# FECHAS Y VENCIMIENTO
# ==============================================================================

def _calendar_day(now: Any) -> date:
    """Día LOCAL de `now` (instantes con zona se llevan a local_zone())."""
    day = local_day(now)
    if day is None:
        raise ValidationError('now', f"fecha inválida: {now!r}")
    return day


def compute_due_date(created_at: Any, payment_terms_days: int) -> str:
    """
    Fecha de vencimiento: día local de creación + días de crédito.

    >>> compute_due_date('2024-01-01T09:00:00+00:00', 30)
    '2024-01-31'
    """
    created = parse_datetime(created_at)
    if created is None:
        raise ValidationError('created_at', f"fecha inválida: {created_at!r}")
    return (local_day(created) + timedelta(days=int(payment_terms_days))).isoformat()


def is_overdue(obligation: Obligation, now: Any) -> bool:
    """Pendiente y con due_date estrictamente anterior al día de `now`."""
    if obligation.status != ObligationStatus.PENDING.value:
        return False
    due = obligation.due
    return due is not None and due < _calendar_day(now)


# ==============================================================================
# VALIDACIÓN
# ==============================================================================

def _value(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data and data[key] is not None and data[key] != '':
            return data[key]
    return None


# Alias aceptados en los formularios → nombre canónico
INPUT_ALIASES = {
    'referenceNumber': 'reference_number',
    'invoice_number': 'reference_number',
    'counterpartyType': 'counterparty_type',
    'entity_type': 'counterparty_type',
    'customerId': 'customer_id',
    'supplierId': 'supplier_id',
    'paymentTermsDays': 'payment_terms_days',
    'payment_terms': 'payment_terms_days',
}


def canonical_input(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Mismos datos con las claves alias renombradas y sin valores None.
    Si vienen la clave canónica y su alias, gana la canónica.
    """
    result = {}
    for key, value in data.items():
        if value is None:
            continue
        target = INPUT_ALIASES.get(key, key)
        if target != key and target in data and data[target] is not None:
            continue
        result[target] = value
    return result


def _find_counterparty(counterparties: Iterable[Counterparty], counterparty_id: str) -> Optional[Counterparty]:
    for counterparty in counterparties:
        if counterparty.id == counterparty_id:
            return counterparty
    return None


def validate_obligation_input(
    data: Dict[str, Any],
    existing: List[Obligation],
    customers: List[Counterparty],
    suppliers: List[Counterparty],
    exclude_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Valida los datos de una cuenta nueva o editada.

    Args:
        data: Datos del formulario (reference_number, counterparty_type,
              customer_id | supplier_id, amount, currency,
              payment_terms_days, description)
        existing: Cuentas de la misma colección (unicidad del número)
        customers: Directorio de clientes
        suppliers: Directorio de proveedores
        exclude_id: ID de la cuenta que se edita (None al crear)

    Returns:
        Campos normalizados, incluyendo counterparty_id y la copia
        del nombre de la contraparte

    Raises:
        ValidationError: Con el campo que falló
    """
    creating = exclude_id is None

    # Número de referencia
    reference = str(_value(data, 'reference_number', 'referenceNumber', 'invoice_number') or '').strip()
    if not reference:
        raise ValidationError('reference_number', 'El número de referencia es requerido')
    for obligation in existing:
        if obligation.id != exclude_id and obligation.reference_number.strip().lower() == reference.lower():
            raise ValidationError('reference_number', f"Ya existe una cuenta con el número {reference}")

    # Contraparte
    counterparty_type = str(_value(data, 'counterparty_type', 'counterpartyType', 'entity_type') or '').strip().lower()
    try:
        counterparty_type = CounterpartyType(counterparty_type).value
    except ValueError:
        raise ValidationError('counterparty_type', 'Debe ser customer o supplier')

    customer_id = _value(data, 'customer_id', 'customerId')
    supplier_id = _value(data, 'supplier_id', 'supplierId')
    if customer_id is not None and supplier_id is not None:
        raise ValidationError('counterparty_id', 'Indique solo un cliente o un proveedor')

    if counterparty_type == CounterpartyType.CUSTOMER.value:
        if customer_id is None:
            raise ValidationError('customer_id', 'Una cuenta de cliente requiere customer_id')
        counterparty_id, directory = str(customer_id), customers
    else:
        if supplier_id is None:
            raise ValidationError('supplier_id', 'Una cuenta de proveedor requiere supplier_id')
        counterparty_id, directory = str(supplier_id), suppliers

    id_field = f"{counterparty_type}_id"
    counterparty = _find_counterparty(directory, counterparty_id)
    if counterparty is None:
        raise ValidationError(id_field, f"No existe la contraparte {counterparty_id}")
    if creating and not counterparty.is_active:
        raise ValidationError(id_field, f"{counterparty.name} está inactivo")

    # Monto
    raw_amount = data.get('amount')
    if isinstance(raw_amount, bool):
        raise ValidationError('amount', 'Monto inválido')
    try:
        amount = float(raw_amount)
    except (TypeError, ValueError):
        raise ValidationError('amount', 'Monto inválido')
    if not math.isfinite(amount) or amount <= 0:
        raise ValidationError('amount', 'El monto debe ser mayor a 0')

    # Moneda
    try:
        currency = Currency(str(data.get('currency') or '').strip().upper()).value
    except ValueError:
        raise ValidationError('currency', 'La moneda debe ser USD o VES')

    # Días de crédito
    raw_terms = _value(data, 'payment_terms_days', 'paymentTermsDays', 'payment_terms')
    if raw_terms is None:
        terms = counterparty.payment_terms_days if counterparty.payment_terms_days is not None \
            else DEFAULT_PAYMENT_TERMS
    else:
        if isinstance(raw_terms, bool):
            raise ValidationError('payment_terms_days', 'Debe ser un número entero')
        try:
            terms = int(str(raw_terms).strip())
        except (TypeError, ValueError):
            raise ValidationError('payment_terms_days', 'Debe ser un número entero')
        if terms < 0:
            raise ValidationError('payment_terms_days', 'No puede ser negativo')

    return {
        'reference_number': reference,
        'counterparty_type': counterparty_type,
        'counterparty_id': counterparty_id,
        'counterparty_name': counterparty.name,
        'amount': amount,
        'currency': currency,
        'payment_terms_days': terms,
        'description': str(data.get('description') or '').strip(),
    }


# ==============================================================================
# MÁQUINA DE ESTADOS
# ==============================================================================

def _normalize_status(status: Any) -> str:
    try:
        return ObligationStatus(str(status or '').strip().lower()).value
    except ValueError:
        raise ValidationError('status', f"Estado desconocido: {status!r}")


def transition(obligation: Obligation, to_status: Any, now: Any = None) -> Obligation:
    """
    Cambia el estado de una cuenta respetando la máquina de estados.
    'overdue' solo lo asigna reconcile_overdue, nunca una acción del usuario.

    Returns:
        Copia con el nuevo estado (la original no se modifica)

    Raises:
        InvalidTransition: Si el cambio no está permitido
    """
    target = _normalize_status(to_status)
    if target == ObligationStatus.OVERDUE.value \
            or target not in ALLOWED_TRANSITIONS.get(obligation.status, frozenset()):
        raise InvalidTransition(obligation.status, target)
    stamp = (now or utc_now()).isoformat()
    return obligation.with_changes(status=target, updated_at=stamp)


def reconcile_overdue(obligations: List[Obligation], now: Any) -> Tuple[List[Obligation], List[str]]:
    """
    Marca como vencidas las cuentas pendientes con due_date pasada.

    Función pura e idempotente: aplicarla dos veces da el mismo resultado
    que aplicarla una vez. Las cuentas terminales nunca cambian.

    Returns:
        (colección nueva, IDs que cambiaron)
    """
    stamp = now.isoformat() if isinstance(now, (datetime, date)) else str(now)
    result = []
    changed = []
    for obligation in obligations:
        if is_overdue(obligation, now):
            result.append(obligation.with_changes(status=ObligationStatus.OVERDUE.value, updated_at=stamp))
            changed.append(obligation.id)
        else:
            result.append(obligation)
    return result, changed


# ==============================================================================
# TOTALES Y FILTROS
# ==============================================================================

def _empty_bucket() -> Dict[str, float]:
    return {Currency.USD.value: 0.0, Currency.VES.value: 0.0}


def totals_by_status_and_currency(obligations: Iterable[Obligation]) -> Dict[str, Dict[str, float]]:
    """
    Suma montos por estado y moneda.

    Returns:
        {'pending': {'USD': x, 'VES': y}, 'overdue': {...}, 'paid': {...}, 'cancelled': {...}}
    """
    totals = {status.value: _empty_bucket() for status in ObligationStatus}
    for obligation in obligations:
        bucket = totals.get(obligation.status)
        if bucket is not None and obligation.currency in bucket:
            bucket[obligation.currency] += obligation.amount
    return totals


def outstanding_totals(obligations: Iterable[Obligation]) -> Dict[str, Dict[str, float]]:
    """Pendiente, vencido y total por cobrar/pagar (pendiente + vencido) por moneda."""
    totals = totals_by_status_and_currency(obligations)
    pending = totals[ObligationStatus.PENDING.value]
    overdue = totals[ObligationStatus.OVERDUE.value]
    return {
        'pending': pending,
        'overdue': overdue,
        'outstanding': {code: pending[code] + overdue[code] for code in pending},
    }


def filter_obligations(
    obligations: Iterable[Obligation],
    search: str = '',
    status: str = 'all',
    currency: str = 'all',
    counterparty_type: str = 'all'
) -> List[Obligation]:
    """Búsqueda por número, contraparte o descripción + filtros exactos."""
    query = (search or '').strip().lower()
    result = []
    for obligation in obligations:
        if status and status != 'all' and obligation.status != status:
            continue
        if currency and currency != 'all' and obligation.currency != currency.upper():
            continue
        if counterparty_type and counterparty_type != 'all' and obligation.counterparty_type != counterparty_type:
            continue
        if query and not any(
            query in (text or '').lower()
            for text in (obligation.reference_number, obligation.counterparty_name, obligation.description)
        ):
            continue
        result.append(obligation)
    return result


def generate_reference_number(now: Any, existing: Iterable[Obligation]) -> str:
    """Siguiente número libre del día: INV-YYYYMMDD-NNN."""
    prefix = f"{REFERENCE_PREFIX}-{_calendar_day(now).strftime('%Y%m%d')}-"
    taken = {o.reference_number for o in existing}

    last = 0
    for reference in taken:
        if reference.startswith(prefix):
            try:
                last = max(last, int(reference[len(prefix):]))
            except ValueError:
                continue

    number = last + 1
    while f"{prefix}{number:03d}" in taken:
        number += 1
    return f"{prefix}{number:03d}"


# ==============================================================================
# SERVICIO
# ==============================================================================

class ObligationService:
    """
    Servicio para gestión de una colección de cuentas.

    Una instancia por colección: cuentas por cobrar o cuentas por pagar.

    Responsabilidades:
    - Crear, editar y eliminar cuentas (validando contra el directorio)
    - Marcar como pagada o cancelada
    - Reconciliar vencimientos antes de cada lectura
    - Registrar los cambios en auditoría
    """

    def __init__(
        self,
        kind: str,
        obligation_repo: ObligationRepository,
        directory_repo: DirectoryRepository = None,
        audit_service: AuditService = None
    ):
        """
        Args:
            kind: 'receivable' o 'payable'
            obligation_repo: Repositorio de la colección
            directory_repo: Directorio de clientes y proveedores
            audit_service: Servicio de auditoría (opcional)
        """
        self.kind = ObligationKind(kind).value
        self.obligation_repo = obligation_repo
        self.directory_repo = directory_repo
        self.audit_service = audit_service
        self.last_error: Optional[PersistenceError] = None
        self._lock = threading.RLock()

    # =========================================================================
    # CARGA
    # =========================================================================

    def _load(self) -> List[Obligation]:
        obligations = self.obligation_repo.load()
        self.last_error = None
        return obligations

    def _load_or_empty(self) -> List[Obligation]:
        try:
            return self._load()
        except PersistenceError as e:
            self.last_error = e
            print(f"[ERROR] Cargando cuentas ({self.kind}): {e}")
            return []

    def _load_for_write(self) -> List[Obligation]:
        """
        Colección a modificar. Si el archivo ilegible ya fue apartado se parte
        de una colección vacía; si sigue en su lugar no se sobrescribe.
        """
        try:
            return self._load()
        except PersistenceError as e:
            if not e.path or os.path.exists(e.path):
                raise
            self.last_error = e
            print(f"[ADVERTENCIA] {e}. Se continúa con una colección vacía ({self.kind})")
            return []

    def _directories(self) -> Tuple[List[Counterparty], List[Counterparty]]:
        if self.directory_repo is None:
            return [], []
        return self.directory_repo.load_customers(), self.directory_repo.load_suppliers()

    def _reconcile_and_save(self, obligations: List[Obligation], now: datetime) -> Tuple[List[Obligation], List[str]]:
        reconciled, changed = reconcile_overdue(obligations, now)
        if changed:
            self.obligation_repo.save(reconciled)
            print(f"[CUENTAS] {len(changed)} cuenta(s) {self.kind} marcadas como vencidas")
            if self.audit_service:
                by_id = {o.id: o for o in reconciled}
                for obligation_id in changed:
                    self.audit_service.log_status_change(
                        'sistema', self.kind, by_id[obligation_id],
                        ObligationStatus.PENDING.value, ObligationStatus.OVERDUE.value,
                        automatic=True
                    )
        return reconciled, changed

    # =========================================================================
    # CONSULTA
    # =========================================================================

    def list_obligations(self, now: Optional[datetime] = None) -> List[Obligation]:
        """
        Colección reconciliada (la lectura autoritativa).
        Si el almacenamiento no se puede leer retorna lista vacía.
        """
        now = now or utc_now()
        with self._lock:
            try:
                obligations = self._load()
            except PersistenceError as e:
                self.last_error = e
                print(f"[ERROR] Cargando cuentas ({self.kind}): {e}")
                return []
            reconciled, _ = self._reconcile_and_save(obligations, now)
            return reconciled

    def get(self, obligation_id: str, now: Optional[datetime] = None) -> Optional[Obligation]:
        for obligation in self.list_obligations(now):
            if obligation.id == obligation_id:
                return obligation
        return None

    def totals(self, now: Optional[datetime] = None) -> Dict[str, Dict[str, float]]:
        return totals_by_status_and_currency(self.list_obligations(now))

    def next_reference_number(self, now: Optional[datetime] = None) -> str:
        return generate_reference_number(now or utc_now(), self._load_or_empty())

    def reconcile(self, now: Optional[datetime] = None) -> List[str]:
        """Tick explícito de vencimientos. Retorna los IDs que cambiaron."""
        now = now or utc_now()
        with self._lock:
            _, changed = self._reconcile_and_save(self._load_for_write(), now)
            return changed

    # =========================================================================
    # ALTA, EDICIÓN, BAJA
    # =========================================================================

    def create(self, data: Dict[str, Any], user: str = 'sistema', now: Optional[datetime] = None) -> Obligation:
        """
        Registra una cuenta nueva.

        Raises:
            ValidationError: Datos inválidos (no se escribe nada)
            PersistenceError: No se pudo leer o guardar la colección
        """
        now = now or utc_now()
        with self._lock:
            obligations = self._load_for_write()
            customers, suppliers = self._directories()
            fields = validate_obligation_input(data, obligations, customers, suppliers)

            stamp = now.isoformat()
            obligation = Obligation(
                id=uuid.uuid4().hex,
                due_date=compute_due_date(now, fields['payment_terms_days']),
                status=ObligationStatus.PENDING.value,
                created_at=stamp,
                updated_at=stamp,
                **fields
            )
            self.obligation_repo.save(obligations + [obligation])

        print(f"[CUENTAS] {self.kind} {obligation.reference_number} creada "
              f"({obligation.amount} {obligation.currency}, vence {obligation.due_date})")
        if self.audit_service:
            self.audit_service.log_obligation_created(user, self.kind, obligation)
        return obligation

    def update(
        self,
        obligation_id: str,
        data: Dict[str, Any],
        user: str = 'sistema',
        now: Optional[datetime] = None
    ) -> Obligation:
        """
        Edita una cuenta existente.

        Los campos omitidos conservan su valor. El vencimiento se recalcula
        desde el created_at original con los (posibles) nuevos días de crédito.

        Raises:
            ValidationError: Datos inválidos o ID inexistente
            PersistenceError: No se pudo leer o guardar la colección
        """
        now = now or utc_now()
        with self._lock:
            obligations = self._load_for_write()
            current = next((o for o in obligations if o.id == obligation_id), None)
            if current is None:
                raise ValidationError('id', f"No existe la cuenta {obligation_id}")

            merged = self._as_input(current)
            changes = canonical_input(data or {})
            merged.update(changes)
            new_type = str(changes.get('counterparty_type', current.counterparty_type)).strip().lower()
            if new_type != current.counterparty_type:
                # Cambio de tipo: solo vale el ID que vino en la petición
                merged.pop('customer_id' if new_type == CounterpartyType.SUPPLIER.value else 'supplier_id', None)

            customers, suppliers = self._directories()
            fields = validate_obligation_input(merged, obligations, customers, suppliers, exclude_id=obligation_id)

            # Misma contraparte → se conserva el nombre copiado al crear
            if (fields['counterparty_type'], fields['counterparty_id']) == \
                    (current.counterparty_type, current.counterparty_id):
                fields['counterparty_name'] = current.counterparty_name

            # Se conserva el estado; ampliar los días de crédito no des-vence
            due_date = compute_due_date(current.created_at or now, fields['payment_terms_days'])
            updated = current.with_changes(due_date=due_date, updated_at=now.isoformat(), **fields)
            reconciled = [updated if o.id == obligation_id else o for o in obligations]
            reconciled, changed = reconcile_overdue(reconciled, now)
            updated = next(o for o in reconciled if o.id == obligation_id)
            self.obligation_repo.save(reconciled)

        if self.audit_service:
            self.audit_service.log_obligation_updated(user, self.kind, current, updated)
            if current.status != updated.status:
                self.audit_service.log_status_change(
                    user, self.kind, updated, current.status, updated.status,
                    automatic=obligation_id in changed
                )
        return updated

    def delete(self, obligation_id: str, user: str = 'sistema') -> Optional[Obligation]:
        """
        Elimina una cuenta. Si no existe no hace nada (no escribe).

        Returns:
            La cuenta eliminada o None
        """
        with self._lock:
            obligations = self._load_for_write()
            removed = next((o for o in obligations if o.id == obligation_id), None)
            if removed is None:
                return None
            self.obligation_repo.save([o for o in obligations if o.id != obligation_id])

        print(f"[CUENTAS] {self.kind} {removed.reference_number} eliminada por {user}")
        if self.audit_service:
            self.audit_service.log_obligation_deleted(user, self.kind, removed)
        return removed

    # =========================================================================
    # CAMBIOS DE ESTADO
    # =========================================================================

    def mark_paid(self, obligation_id: str, user: str = 'sistema', now: Optional[datetime] = None) -> Obligation:
        return self._change_status(obligation_id, ObligationStatus.PAID.value, user, now)

    def cancel(self, obligation_id: str, user: str = 'sistema', now: Optional[datetime] = None) -> Obligation:
        return self._change_status(obligation_id, ObligationStatus.CANCELLED.value, user, now)

    def _change_status(self, obligation_id: str, to_status: str, user: str, now: Optional[datetime]) -> Obligation:
        now = now or utc_now()
        with self._lock:
            obligations, _ = self._reconcile_and_save(self._load_for_write(), now)
            current = next((o for o in obligations if o.id == obligation_id), None)
            if current is None:
                raise ValidationError('id', f"No existe la cuenta {obligation_id}")

            updated = transition(current, to_status, now)
            self.obligation_repo.save([updated if o.id == obligation_id else o for o in obligations])

        print(f"[CUENTAS] {self.kind} {updated.reference_number}: {current.status} → {updated.status}")
        if self.audit_service:
            self.audit_service.log_status_change(user, self.kind, updated, current.status, updated.status)
        return updated

    @staticmethod
    def _as_input(obligation: Obligation) -> Dict[str, Any]:
        """Datos de formulario equivalentes a una cuenta guardada."""
        data = {
            'reference_number': obligation.reference_number,
            'counterparty_type': obligation.counterparty_type,
            'amount': obligation.amount,
            'currency': obligation.currency,
            'payment_terms_days': obligation.payment_terms_days,
            'description': obligation.description,
        }
        id_key = 'supplier_id' if obligation.counterparty_type == CounterpartyType.SUPPLIER.value \
            else 'customer_id'
        data[id_key] = obligation.counterparty_id
        return data
