# ==============================================================================
# SERVICIO DE AUDITORÍA
# ==============================================================================
# Centraliza toda la lógica de registro de auditoría.
# Formatea mensajes humanizados y categoriza eventos.
#
# Un fallo al escribir la auditoría se reporta por consola pero nunca
# deshace ni bloquea la operación contable que lo originó.
# ==============================================================================

from typing import Any, Dict, List

from flowi_ledger.errors import PersistenceError
from flowi_ledger.models import ExchangeRate, Obligation, ObligationKind, STATUS_LABELS
from flowi_ledger.repositories.audit_repository import AuditRepository
from flowi_ledger.services.currency import format_currency


KIND_LABELS = {
    ObligationKind.RECEIVABLE.value: 'Cuenta por cobrar',
    ObligationKind.PAYABLE.value: 'Cuenta por pagar',
}


class AuditService:
    """
    Servicio para registro y consulta de auditoría.

    Centraliza:
    - Registro de eventos con mensajes humanizados
    - Categorización de eventos (CUENTA, ESTADO, TASA, SISTEMA)
    - Búsqueda y filtrado de logs
    """

    # Tipos de eventos de auditoría
    TYPE_CUENTA = 'CUENTA'
    TYPE_ESTADO = 'ESTADO'
    TYPE_TASA = 'TASA'
    TYPE_SISTEMA = 'SISTEMA'

    def __init__(self, audit_repo: AuditRepository):
        """
        Args:
            audit_repo: Repositorio de auditoría
        """
        self.audit_repo = audit_repo

    # =========================================================================
    # REGISTRO DE EVENTOS
    # =========================================================================

    def log(
        self,
        log_type: str,
        user: str,
        message: str,
        related_id: str = '',
        details: Dict[str, Any] = None
    ) -> bool:
        """
        Registra un evento de auditoría genérico.

        Returns:
            False si no se pudo escribir (el error queda en consola)
        """
        try:
            self.audit_repo.log(log_type, user, message, related_id, details)
            return True
        except PersistenceError as e:
            print(f"[ERROR] Auditoría no registrada ({log_type}): {e}")
            return False

    def log_obligation_created(self, user: str, kind: str, obligation: Obligation) -> None:
        amount = format_currency(obligation.amount, obligation.currency)
        message = (f"{KIND_LABELS.get(kind, kind)} {obligation.reference_number} creada por {user} - "
                   f"{obligation.counterparty_name} - {amount} - Vence: {obligation.due_date}")
        self.log(
            self.TYPE_CUENTA,
            user,
            message,
            obligation.reference_number,
            {'kind': kind, 'id': obligation.id, 'amount': obligation.amount,
             'currency': obligation.currency, 'due_date': obligation.due_date}
        )

    def log_obligation_updated(self, user: str, kind: str, before: Obligation, after: Obligation) -> None:
        """
        Registra la edición de una cuenta con los campos que cambiaron.
        Si nada cambió no registra nada.
        """
        old, new = before.to_dict(), after.to_dict()
        changes = {
            key: {'from': old[key], 'to': new[key]}
            for key in new
            if key not in ('updated_at', 'status') and old.get(key) != new[key]
        }
        if not changes:
            return
        message = (f"{KIND_LABELS.get(kind, kind)} {after.reference_number} editada por {user} - "
                   f"Campos: {', '.join(sorted(changes))}")
        self.log(self.TYPE_CUENTA, user, message, after.reference_number,
                 {'kind': kind, 'id': after.id, 'changes': changes})

    def log_status_change(
        self,
        user: str,
        kind: str,
        obligation: Obligation,
        old_status: str,
        new_status: str,
        automatic: bool = False
    ) -> None:
        """
        Registra un cambio de estado.

        Args:
            automatic: True cuando el cambio lo hizo la reconciliación de vencimientos
        """
        old_label = STATUS_LABELS.get(old_status, old_status)
        new_label = STATUS_LABELS.get(new_status, new_status)
        who = 'automático por vencimiento' if automatic else f"por {user}"
        message = f"{KIND_LABELS.get(kind, kind)} {obligation.reference_number}: {old_label} → {new_label} {who}"
        self.log(
            self.TYPE_ESTADO,
            'sistema' if automatic else user,
            message,
            obligation.reference_number,
            {'kind': kind, 'id': obligation.id, 'from': old_status, 'to': new_status, 'automatic': automatic}
        )

    def log_obligation_deleted(self, user: str, kind: str, obligation: Obligation) -> None:
        amount = format_currency(obligation.amount, obligation.currency)
        message = f"{KIND_LABELS.get(kind, kind)} {obligation.reference_number} eliminada por {user} - {amount}"
        self.log(self.TYPE_CUENTA, user, message, obligation.reference_number,
                 {'kind': kind, 'id': obligation.id, 'snapshot': obligation.to_dict()})

    def log_rate_change(self, rate: ExchangeRate, user: str = 'sistema') -> None:
        """Suscriptor del ExchangeRateManager: registra cada tasa nueva."""
        message = f"Tasa de cambio actualizada: 1 USD = {format_currency(rate.usd_to_local, 'VES')} ({rate.source})"
        self.log(self.TYPE_TASA, user, message, rate.captured_at, rate.to_dict())

    def log_system(self, message: str, details: Dict[str, Any] = None) -> None:
        self.log(self.TYPE_SISTEMA, 'sistema', message, '', details)

    # =========================================================================
    # CONSULTAS
    # =========================================================================

    def search(
        self,
        query: str = '',
        log_type: str = None,
        related_id: str = None,
        limit: int = 200
    ) -> List[Dict[str, Any]]:
        """
        Búsqueda de logs con filtros.

        Args:
            query: Texto libre (usuario, mensaje, ID relacionado)
            log_type: Filtrar por tipo
            related_id: Filtrar por número de referencia
            limit: Máximo de resultados
        """
        return self.audit_repo.search_logs(query, log_type, related_id)[:limit]

    def get_recent(self, limit: int = 100) -> List[Dict[str, Any]]:
        return self.audit_repo.get_recent_logs(limit)

    def get_log_types(self) -> List[str]:
        return [self.TYPE_CUENTA, self.TYPE_ESTADO, self.TYPE_TASA, self.TYPE_SISTEMA]
