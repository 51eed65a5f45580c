import os

from flowi_ledger import performance_logger
from flowi_ledger.performance_logger import (
    get_function_stats,
    profile_function,
    reset_stats,
    write_function_stats_report,
)


def test_profile_function_counts_calls():
    reset_stats()

    @profile_function(name="Suma de prueba")
    def add(a, b):
        return a + b

    assert add(2, 3) == 5
    assert add(1, 1) == 2

    stats = get_function_stats()['Suma de prueba']
    assert stats['calls'] == 2
    assert stats['max_time'] >= stats['avg_time'] >= 0


def test_profile_function_records_failures():
    reset_stats()

    @profile_function
    def explode():
        raise ValueError('x')

    try:
        explode()
    except ValueError:
        pass

    stats = get_function_stats()['explode']
    assert stats['calls'] == 1
    assert stats['errors'] == 1


def test_stats_report_written(monkeypatch, tmp_path):
    report = os.path.join(str(tmp_path), 'slow_functions.log')
    monkeypatch.setattr(performance_logger, 'LOGS_DIR', str(tmp_path))
    monkeypatch.setattr(performance_logger, 'SLOW_FUNCTIONS_LOG', report)
    reset_stats()

    @profile_function(name="Tarea medida")
    def task():
        return 1

    task()
    write_function_stats_report()

    with open(report, encoding='utf-8') as f:
        assert 'Tarea medida' in f.read()


def test_route_names():
    assert performance_logger._get_route_name('GET', '/api/dashboard') == 'Ver panel principal'
    assert performance_logger._get_route_name(
        'POST', '/api/receivables/abc/pay', '/api/<kind>/<obligation_id>/pay'
    ) == 'Marcar cuenta pagada'
    assert performance_logger._get_route_name('GET', '/otra') == 'GET /otra'


def test_slow_request_goes_to_slow_routes(monkeypatch, tmp_path):
    all_requests = os.path.join(str(tmp_path), 'performance.log')
    slow = os.path.join(str(tmp_path), 'slow_routes.log')
    monkeypatch.setattr(performance_logger, 'PERFORMANCE_LOG', all_requests)
    monkeypatch.setattr(performance_logger, 'SLOW_ROUTES_LOG', slow)

    performance_logger.log_request('GET', '/api/dashboard', '/api/dashboard', 12, 200, 'ana')
    performance_logger.log_request('GET', '/api/analytics', '/api/analytics', 900, 200, None)

    with open(all_requests, encoding='utf-8') as f:
        lines = f.read().splitlines()
    assert len(lines) == 2
    assert 'Ver panel principal' in lines[0] and lines[0].endswith('| ana')

    with open(slow, encoding='utf-8') as f:
        slow_lines = f.read().splitlines()
    assert len(slow_lines) == 1
    assert slow_lines[0].startswith('[CRÍTICO]')
    assert 'Ver analítica de ventas' in slow_lines[0]
