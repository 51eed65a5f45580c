import os

import pytest

from flowi_ledger.errors import InvalidTransition, ValidationError
from flowi_ledger.models import Obligation
from flowi_ledger.repositories import AuditRepository, DirectoryRepository, ObligationRepository
from flowi_ledger.services import AuditService, ObligationService
from flowi_ledger.services.obligation_service import (
    compute_due_date,
    filter_obligations,
    generate_reference_number,
    is_overdue,
    outstanding_totals,
    reconcile_overdue,
    totals_by_status_and_currency,
    transition,
    validate_obligation_input,
)

from conftest import utc


def make_obligation(**overrides):
    data = dict(
        id='o1',
        counterparty_type='customer',
        counterparty_id='1',
        counterparty_name='Empresa ABC C.A.',
        reference_number='INV-20240101-001',
        amount=100.0,
        currency='USD',
        payment_terms_days=30,
        due_date='2024-01-31',
        status='pending',
        created_at='2024-01-01T10:00:00+00:00',
        updated_at='2024-01-01T10:00:00+00:00',
    )
    data.update(overrides)
    return Obligation(**data)


def valid_input(**overrides):
    data = {
        'reference_number': 'F-001',
        'counterparty_type': 'customer',
        'customer_id': '1',
        'amount': 250,
        'currency': 'usd',
    }
    data.update(overrides)
    return data


# =============================================================================
# VENCIMIENTO
# =============================================================================

def test_due_date_adds_payment_terms_to_creation_day():
    assert compute_due_date('2024-01-01T23:59:00+00:00', 30) == '2024-01-31'
    assert compute_due_date('2024-02-20T00:00:00+00:00', 10) == '2024-03-01'
    assert compute_due_date('2024-01-01T10:00:00+00:00', 0) == '2024-01-01'


def test_due_day_itself_is_not_overdue():
    obligation = make_obligation()
    assert not is_overdue(obligation, utc(2024, 1, 31, 23, 59))
    assert is_overdue(obligation, utc(2024, 2, 1, 0, 1))


def test_overdue_uses_the_local_calendar_day(monkeypatch):
    monkeypatch.setenv('FLOWI_TIMEZONE', 'America/Caracas')
    obligation = make_obligation(due_date='2024-01-31')

    # 02:00 UTC del 1 de febrero son las 22:00 del 31 en Caracas
    assert not is_overdue(obligation, utc(2024, 2, 1, 2, 0))
    assert is_overdue(obligation, utc(2024, 2, 1, 5, 0))
    assert compute_due_date('2024-01-01T02:00:00Z', 30) == '2024-01-30'


def test_terminal_obligations_never_overdue():
    assert not is_overdue(make_obligation(status='paid'), utc(2025, 1, 1))
    assert not is_overdue(make_obligation(status='cancelled'), utc(2025, 1, 1))


# =============================================================================
# VALIDACIÓN
# =============================================================================

def test_valid_input_is_normalized(customers, suppliers):
    fields = validate_obligation_input(valid_input(), [], customers, suppliers)

    assert fields['counterparty_id'] == '1'
    assert fields['counterparty_name'] == 'Empresa ABC C.A.'
    assert fields['currency'] == 'USD'
    assert fields['amount'] == 250.0
    # Sin días de crédito → los de la contraparte
    assert fields['payment_terms_days'] == 30


def test_supplier_input_uses_supplier_directory(customers, suppliers):
    data = {
        'reference_number': 'P-1',
        'counterparty_type': 'supplier',
        'supplier_id': 'supplier-1',
        'amount': '1500.50',
        'currency': 'VES',
        'payment_terms_days': '7',
    }
    fields = validate_obligation_input(data, [], customers, suppliers)

    assert fields['counterparty_name'] == 'Proveedor Ejemplo 1'
    assert fields['amount'] == 1500.5
    assert fields['payment_terms_days'] == 7


@pytest.mark.parametrize('overrides, field', [
    ({'reference_number': '  '}, 'reference_number'),
    ({'counterparty_type': 'bank'}, 'counterparty_type'),
    ({'supplier_id': 'supplier-1'}, 'counterparty_id'),
    ({'customer_id': None}, 'customer_id'),
    ({'counterparty_type': 'supplier', 'customer_id': None}, 'supplier_id'),
    ({'customer_id': '99'}, 'customer_id'),
    ({'customer_id': '3'}, 'customer_id'),
    ({'amount': 0}, 'amount'),
    ({'amount': -10}, 'amount'),
    ({'amount': 'mucho'}, 'amount'),
    ({'amount': float('nan')}, 'amount'),
    ({'amount': float('inf')}, 'amount'),
    ({'amount': True}, 'amount'),
    ({'currency': 'EUR'}, 'currency'),
    ({'payment_terms_days': -1}, 'payment_terms_days'),
    ({'payment_terms_days': 'dos'}, 'payment_terms_days'),
    ({'payment_terms_days': 2.5}, 'payment_terms_days'),
])
def test_invalid_input_reports_field(customers, suppliers, overrides, field):
    with pytest.raises(ValidationError) as exc:
        validate_obligation_input(valid_input(**overrides), [], customers, suppliers)
    assert exc.value.field == field


def test_reference_number_unique_ignoring_case(customers, suppliers):
    existing = [make_obligation(reference_number='F-001')]

    with pytest.raises(ValidationError) as exc:
        validate_obligation_input(valid_input(reference_number='f-001'), existing, customers, suppliers)
    assert exc.value.field == 'reference_number'

    # La propia cuenta no choca consigo misma al editar
    fields = validate_obligation_input(valid_input(reference_number='F-001'), existing,
                                       customers, suppliers, exclude_id='o1')
    assert fields['reference_number'] == 'F-001'


def test_inactive_counterparty_allowed_when_editing(customers, suppliers):
    fields = validate_obligation_input(valid_input(customer_id='3'), [], customers, suppliers, exclude_id='o1')
    assert fields['counterparty_name'] == 'Cliente Inactivo'


# =============================================================================
# MÁQUINA DE ESTADOS
# =============================================================================

def test_allowed_transitions():
    pending = make_obligation()
    overdue = make_obligation(status='overdue')

    assert transition(pending, 'paid', utc(2024, 1, 5)).status == 'paid'
    assert transition(pending, 'cancelled').status == 'cancelled'
    assert transition(overdue, 'paid').status == 'paid'
    assert transition(overdue, 'cancelled').status == 'cancelled'
    # La original no cambia
    assert pending.status == 'pending'


@pytest.mark.parametrize('start, target', [
    ('paid', 'pending'),
    ('paid', 'cancelled'),
    ('cancelled', 'paid'),
    ('overdue', 'pending'),
    ('pending', 'overdue'),
    ('pending', 'pending'),
])
def test_forbidden_transitions(start, target):
    with pytest.raises(InvalidTransition) as exc:
        transition(make_obligation(status=start), target)
    assert exc.value.from_status == start
    assert exc.value.to_status == target


def test_unknown_status_is_validation_error():
    with pytest.raises(ValidationError) as exc:
        transition(make_obligation(), 'archived')
    assert exc.value.field == 'status'


# =============================================================================
# RECONCILIACIÓN
# =============================================================================

def test_reconcile_marks_only_past_due_pending():
    obligations = [
        make_obligation(id='a', due_date='2024-01-31'),
        make_obligation(id='b', due_date='2024-02-01'),
        make_obligation(id='c', due_date='2024-01-01', status='paid'),
        make_obligation(id='d', due_date='2024-01-01', status='overdue'),
    ]

    result, changed = reconcile_overdue(obligations, utc(2024, 2, 1))

    assert changed == ['a']
    assert [o.status for o in result] == ['overdue', 'pending', 'paid', 'overdue']
    # La entrada no se modifica
    assert obligations[0].status == 'pending'


def test_reconcile_is_idempotent():
    obligations = [make_obligation(id='a'), make_obligation(id='b', due_date='2030-01-01')]
    now = utc(2024, 3, 1)

    once, _ = reconcile_overdue(obligations, now)
    twice, changed = reconcile_overdue(once, now)

    assert twice == once
    assert changed == []


# =============================================================================
# TOTALES Y FILTROS
# =============================================================================

def test_totals_never_mix_currencies():
    obligations = [
        make_obligation(id='a', amount=100, currency='USD'),
        make_obligation(id='b', amount=3650, currency='VES'),
        make_obligation(id='c', amount=50, currency='USD', status='overdue'),
        make_obligation(id='d', amount=10, currency='USD', status='paid'),
    ]

    totals = totals_by_status_and_currency(obligations)

    assert totals['pending'] == {'USD': 100, 'VES': 3650}
    assert totals['overdue'] == {'USD': 50, 'VES': 0}
    assert totals['paid'] == {'USD': 10, 'VES': 0}
    assert totals['cancelled'] == {'USD': 0, 'VES': 0}

    outstanding = outstanding_totals(obligations)
    assert outstanding['outstanding'] == {'USD': 150, 'VES': 3650}


def test_filter_by_text_and_status():
    obligations = [
        make_obligation(id='a', reference_number='F-1', counterparty_name='Empresa ABC C.A.'),
        make_obligation(id='b', reference_number='F-2', counterparty_name='Comercial XYZ',
                        currency='VES', status='overdue'),
        make_obligation(id='c', reference_number='P-1', counterparty_type='supplier',
                        counterparty_name='Proveedor', description='harina'),
    ]

    assert [o.id for o in filter_obligations(obligations, search='xyz')] == ['b']
    assert [o.id for o in filter_obligations(obligations, search='HARINA')] == ['c']
    assert [o.id for o in filter_obligations(obligations, status='overdue')] == ['b']
    assert [o.id for o in filter_obligations(obligations, currency='ves')] == ['b']
    assert [o.id for o in filter_obligations(obligations, counterparty_type='supplier')] == ['c']
    assert len(filter_obligations(obligations)) == 3


def test_reference_number_sequence_per_day():
    now = utc(2024, 3, 5)
    assert generate_reference_number(now, []) == 'INV-20240305-001'

    existing = [
        make_obligation(reference_number='INV-20240305-001'),
        make_obligation(reference_number='INV-20240305-007'),
        make_obligation(reference_number='INV-20240304-020'),
    ]
    assert generate_reference_number(now, existing) == 'INV-20240305-008'


# =============================================================================
# SERVICIO
# =============================================================================

@pytest.fixture
def service(tmp_path):
    base = str(tmp_path)
    return ObligationService(
        'receivable',
        ObligationRepository(base, 'receivable'),
        DirectoryRepository(base),
        AuditService(AuditRepository(base)),
    )


def test_create_persists_pending_with_frozen_due_date(service):
    obligation = service.create(valid_input(), user='ana', now=utc(2024, 1, 1))

    assert obligation.status == 'pending'
    assert obligation.due_date == '2024-01-31'
    assert obligation.counterparty_name == 'Empresa ABC C.A.'
    assert service.get(obligation.id, now=utc(2024, 1, 10)) == obligation


def test_create_with_invalid_data_writes_nothing(service):
    with pytest.raises(ValidationError):
        service.create(valid_input(amount=0), now=utc(2024, 1, 1))
    assert not service.obligation_repo.exists()


def test_listing_reconciles_and_saves(service):
    created = service.create(valid_input(customer_id='2'), now=utc(2024, 1, 1))

    listed = service.list_obligations(now=utc(2024, 1, 17))

    assert listed[0].status == 'overdue'
    assert service.obligation_repo.load()[0].status == 'overdue'
    assert service.reconcile(now=utc(2024, 1, 18)) == []
    logs = service.audit_service.search(related_id=created.reference_number, log_type='ESTADO')
    assert logs[0]['user'] == 'sistema'


def test_extending_terms_keeps_overdue_status(service):
    created = service.create(valid_input(), now=utc(2024, 1, 1))
    service.reconcile(now=utc(2024, 2, 1))
    assert service.get(created.id, now=utc(2024, 2, 1)).status == 'overdue'

    updated = service.update(created.id, {'payment_terms_days': 60}, user='ana', now=utc(2024, 2, 1))

    assert updated.due_date == '2024-03-01'
    assert updated.status == 'overdue'
    assert updated.created_at == created.created_at
    assert service.obligation_repo.load()[0].status == 'overdue'
    # Solo el cambio automático a vencida; la edición no registra otro
    assert len(service.audit_service.search(related_id=created.reference_number, log_type='ESTADO')) == 1


def test_update_shorter_terms_makes_it_overdue(service):
    created = service.create(valid_input(), now=utc(2024, 1, 1))

    updated = service.update(created.id, {'payment_terms_days': 10}, now=utc(2024, 1, 20))

    assert updated.due_date == '2024-01-11'
    assert updated.status == 'overdue'


def test_update_unknown_id(service):
    with pytest.raises(ValidationError) as exc:
        service.update('nope', {'amount': 5})
    assert exc.value.field == 'id'


def test_pay_twice_is_invalid_transition(service):
    created = service.create(valid_input(), now=utc(2024, 1, 1))
    paid = service.mark_paid(created.id, user='ana', now=utc(2024, 1, 2))
    assert paid.status == 'paid'

    with pytest.raises(InvalidTransition):
        service.mark_paid(created.id, now=utc(2024, 1, 3))
    with pytest.raises(InvalidTransition):
        service.cancel(created.id, now=utc(2024, 1, 3))


def test_delete_missing_is_noop(service):
    service.create(valid_input(), now=utc(2024, 1, 1))
    with open(service.obligation_repo.file_path, encoding='utf-8') as f:
        before = f.read()

    assert service.delete('nope') is None

    with open(service.obligation_repo.file_path, encoding='utf-8') as f:
        assert f.read() == before


def test_delete_removes_and_audits(service):
    created = service.create(valid_input(), user='ana', now=utc(2024, 1, 1))

    removed = service.delete(created.id, user='ana')

    assert removed.id == created.id
    assert service.list_obligations(now=utc(2024, 1, 2)) == []
    messages = [log['message'] for log in service.audit_service.search(related_id=created.reference_number)]
    assert any('eliminada' in m for m in messages)
    assert any('creada' in m for m in messages)


def test_corrupt_collection_reads_as_empty(service):
    path = service.obligation_repo.file_path
    with open(path, 'w', encoding='utf-8') as f:
        f.write('[{"id": ')

    assert service.list_obligations(now=utc(2024, 1, 1)) == []
    assert service.last_error is not None
    assert not os.path.exists(path)


def test_next_reference_number_skips_taken(service):
    service.create(valid_input(reference_number='INV-20240105-001'), now=utc(2024, 1, 5))
    assert service.next_reference_number(now=utc(2024, 1, 5)) == 'INV-20240105-002'


@pytest.mark.parametrize('content', ['[{"id": ', '{"not": "a list"}'])
def test_create_after_unreadable_collection(service, content):
    path = service.obligation_repo.file_path
    with open(path, 'w', encoding='utf-8') as f:
        f.write(content)

    created = service.create(valid_input(), now=utc(2024, 1, 1))

    assert [o.id for o in service.list_obligations(now=utc(2024, 1, 2))] == [created.id]
    assert service.last_error is None
    aside = [name for name in os.listdir(os.path.dirname(path)) if name.startswith('receivables.json.corrupt-')]
    assert len(aside) == 1
    with open(os.path.join(os.path.dirname(path), aside[0]), encoding='utf-8') as f:
        assert f.read() == content


def test_update_changes_counterparty_type_with_camel_case_keys(service):
    created = service.create(valid_input(), now=utc(2024, 1, 1))

    updated = service.update(
        created.id,
        {'counterpartyType': 'supplier', 'supplierId': 'supplier-1', 'paymentTermsDays': 10},
        now=utc(2024, 1, 2),
    )

    assert updated.counterparty_type == 'supplier'
    assert updated.counterparty_id == 'supplier-1'
    assert updated.counterparty_name == 'Proveedor Ejemplo 1'
    assert updated.payment_terms_days == 10
