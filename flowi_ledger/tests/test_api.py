import pytest

from flowi_ledger.app_container import AppContainer
from flowi_ledger.main import app


@pytest.fixture
def client(tmp_path):
    app.config['TESTING'] = True
    app.config['DATA_DIR'] = str(tmp_path)
    AppContainer.reset_instance()
    with app.test_client() as client:
        yield client
    AppContainer.reset_instance()


def create_receivable(client, **overrides):
    payload = {
        'reference_number': 'F-100',
        'counterparty_type': 'customer',
        'customer_id': '1',
        'amount': 100,
        'currency': 'USD',
    }
    payload.update(overrides)
    return client.post('/api/receivables', json=payload, headers={'X-User': 'ana'})


# =============================================================================
# TASA DE CAMBIO
# =============================================================================

def test_exchange_rate_starts_empty_then_updates(client):
    assert client.get('/api/exchange-rate').get_json()['rate'] is None

    response = client.post('/api/exchange-rate', json={'rate': 36.5, 'source': 'bcv'})
    assert response.status_code == 200
    assert response.get_json()['rate']['usd_to_local'] == 36.5

    client.post('/api/exchange-rate', json={'rate': 40})
    history = client.get('/api/exchange-rate/history').get_json()['history']
    assert [r['usd_to_local'] for r in history] == [36.5]


def test_invalid_rate_is_rejected(client):
    client.post('/api/exchange-rate', json={'rate': 36.5})

    response = client.post('/api/exchange-rate', json={'rate': -2})

    assert response.status_code == 400
    assert response.get_json()['success'] is False
    assert client.get('/api/exchange-rate').get_json()['rate']['usd_to_local'] == 36.5


def test_convert(client):
    response = client.post('/api/convert', json={'amount': 10, 'from': 'USD', 'to': 'VES'})
    assert response.status_code == 400

    client.post('/api/exchange-rate', json={'rate': 36.5})
    data = client.post('/api/convert', json={'amount': 10, 'from': 'USD', 'to': 'VES'}).get_json()

    assert data['amount'] == pytest.approx(365)
    assert data['currency'] == 'VES'
    assert data['formatted'] == 'Bs. 365,00'
    assert data['source'] == {'amount': 10, 'currency': 'USD'}

    explicit = client.post('/api/convert', json={'amount': 80, 'from': 'VES', 'to': 'USD', 'rate': 40}).get_json()
    assert explicit['amount'] == pytest.approx(2)


# =============================================================================
# CUENTAS
# =============================================================================

def test_create_and_list_receivable(client):
    response = create_receivable(client)

    assert response.status_code == 201
    obligation = response.get_json()['obligation']
    assert obligation['status'] == 'pending'
    assert obligation['status_label'] == 'Pendiente'
    assert obligation['amount_display'] == '$100.00'
    assert obligation['counterparty_name'] == 'Empresa ABC C.A.'

    listing = client.get('/api/receivables').get_json()
    assert listing['count'] == 1
    assert listing['outstanding']['outstanding'] == {'USD': 100, 'VES': 0}
    assert client.get('/api/payables').get_json()['count'] == 0


def test_invalid_obligation_reports_field(client):
    response = create_receivable(client, amount=-5)

    assert response.status_code == 400
    assert response.get_json()['field'] == 'amount'


def test_duplicate_reference_rejected(client):
    create_receivable(client)
    response = create_receivable(client, reference_number='f-100')

    assert response.status_code == 400
    assert response.get_json()['field'] == 'reference_number'


def test_pay_then_pay_again_conflicts(client):
    obligation_id = create_receivable(client).get_json()['obligation']['id']

    paid = client.post(f'/api/receivables/{obligation_id}/pay')
    assert paid.status_code == 200
    assert paid.get_json()['obligation']['status'] == 'paid'

    again = client.post(f'/api/receivables/{obligation_id}/pay')
    assert again.status_code == 409
    assert again.get_json()['from'] == 'paid'


def test_update_and_get_obligation(client):
    obligation_id = create_receivable(client).get_json()['obligation']['id']

    response = client.put(f'/api/receivables/{obligation_id}', json={'amount': 150, 'description': 'ajuste'})
    assert response.status_code == 200

    fetched = client.get(f'/api/receivables/{obligation_id}').get_json()['obligation']
    assert fetched['amount'] == 150
    assert fetched['description'] == 'ajuste'


def test_unknown_obligation_is_not_found(client):
    assert client.get('/api/receivables/nope').status_code == 404
    assert client.put('/api/receivables/nope', json={'amount': 1}).status_code == 404
    assert client.post('/api/receivables/nope/cancel').status_code == 404


def test_delete_missing_is_not_an_error(client):
    response = client.delete('/api/payables/nope')

    assert response.status_code == 200
    assert response.get_json()['deleted'] is False


def test_unknown_collection(client):
    assert client.get('/api/invoices').status_code == 404
    assert client.post('/api/invoices', json={}).status_code == 404


def test_supplier_payable_and_next_reference(client):
    response = client.post('/api/payables', json={
        'reference_number': 'P-1',
        'counterparty_type': 'supplier',
        'supplier_id': 'supplier-2',
        'amount': 730,
        'currency': 'VES',
    })
    assert response.status_code == 201
    assert response.get_json()['obligation']['payment_terms_days'] == 15

    reference = client.get('/api/payables/next-reference').get_json()['reference_number']
    assert reference.startswith('INV-') and reference.endswith('-001')


def test_reconcile_endpoint(client):
    create_receivable(client)
    response = client.post('/api/receivables/reconcile')
    assert response.get_json()['changed'] == []


# =============================================================================
# PANEL, INVENTARIO, AUDITORÍA
# =============================================================================

def test_dashboard(client):
    create_receivable(client, currency='VES', amount=3650)
    client.post('/api/exchange-rate', json={'rate': 36.5})

    dashboard = client.get('/api/dashboard').get_json()['dashboard']

    assert dashboard['receivables']['pending'] == {'USD': 0, 'VES': 3650}
    assert dashboard['exchange_rate']['usd_to_local'] == 36.5
    assert dashboard['warnings'] == []


def test_analytics_and_inventory(client):
    client.post('/api/exchange-rate', json={'rate': 10})

    assert client.get('/api/analytics').get_json()['analytics']['payment_methods']['total'] == 0
    inventory = client.get('/api/inventory').get_json()
    assert inventory['products'] == []
    assert inventory['valuation'] == {'usd': 0, 'ves': 0}


def test_audit_trail(client):
    create_receivable(client)
    client.post('/api/exchange-rate', json={'rate': 36.5})

    data = client.get('/api/audit').get_json()
    types = [log['type'] for log in data['logs']]
    assert 'CUENTA' in types
    assert 'TASA' in types
    assert data['types'] == ['CUENTA', 'ESTADO', 'TASA', 'SISTEMA']

    only_accounts = client.get('/api/audit?type=CUENTA').get_json()['logs']
    assert only_accounts[0]['user'] == 'ana'
    assert only_accounts[0]['related_id'] == 'F-100'


def test_counterparties(client):
    data = client.get('/api/counterparties').get_json()
    assert [c['id'] for c in data['customers']] == ['1', '2']
    assert len(data['suppliers']) == 2


def test_security_headers(client):
    response = client.get('/api/exchange-rate')
    assert response.headers['X-Content-Type-Options'] == 'nosniff'
    assert response.headers['X-Frame-Options'] == 'DENY'


def test_performance_endpoints(client):
    client.get('/api/dashboard')

    data = client.get('/api/performance').get_json()
    assert 'Armar panel principal' in data['functions']
    assert set(data['logs']) == {'performance', 'slow_routes', 'slow_functions'}

    assert client.post('/api/performance/report').get_json()['success'] is True
