# ==============================================================================
# SISTEMA DE PROFILING INTERNO
# ==============================================================================
# Mide cuánto tardan las rutas de la API y los cálculos del panel sin tocar
# las respuestas. Cada medición es UNA línea de texto en /logs/:
#
#   performance.log     → todas las peticiones
#   slow_routes.log     → peticiones sobre el umbral (LENTO / CRÍTICO)
#   slow_functions.log  → llamadas lentas y reportes de funciones
#
# ACTIVAR/DESACTIVAR: FLOWI_PROFILING (1/0)
# CARPETA DE LOGS:    FLOWI_LOGS_DIR
# ==============================================================================

import os
import time
import threading
from datetime import datetime
from functools import wraps

# ═══════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════

ENABLE_PROFILING = os.environ.get('FLOWI_PROFILING', '1').lower() not in ('0', 'false', 'no')

# Milisegundos
THRESHOLD_WARNING = 300
THRESHOLD_CRITICAL = 700

LOGS_DIR = os.environ.get('FLOWI_LOGS_DIR') or os.path.join(os.path.dirname(__file__), 'logs')

PERFORMANCE_LOG = os.path.join(LOGS_DIR, 'performance.log')
SLOW_ROUTES_LOG = os.path.join(LOGS_DIR, 'slow_routes.log')
SLOW_FUNCTIONS_LOG = os.path.join(LOGS_DIR, 'slow_functions.log')

# Nombres legibles por ruta: "MÉTODO regla-de-flask"
ROUTE_NAMES = {
    # Tasa de cambio
    'GET /api/exchange-rate': 'Ver tasa de cambio',
    'POST /api/exchange-rate': 'Actualizar tasa de cambio',
    'GET /api/exchange-rate/history': 'Ver historial de tasas',
    'POST /api/convert': 'Convertir monto',

    # Cuentas por cobrar / pagar
    'GET /api/<kind>': 'Listar cuentas',
    'POST /api/<kind>': 'Registrar cuenta',
    'GET /api/<kind>/<obligation_id>': 'Ver cuenta',
    'PUT /api/<kind>/<obligation_id>': 'Editar cuenta',
    'DELETE /api/<kind>/<obligation_id>': 'Eliminar cuenta',
    'POST /api/<kind>/<obligation_id>/pay': 'Marcar cuenta pagada',
    'POST /api/<kind>/<obligation_id>/cancel': 'Cancelar cuenta',
    'POST /api/<kind>/reconcile': 'Reconciliar vencimientos',
    'GET /api/<kind>/next-reference': 'Sugerir número de factura',

    # Panel y analítica
    'GET /api/dashboard': 'Ver panel principal',
    'GET /api/analytics': 'Ver analítica de ventas',
    'GET /api/inventory': 'Ver inventario',
    'GET /api/counterparties': 'Ver clientes y proveedores',

    # Auditoría y rendimiento
    'GET /api/audit': 'Ver registro de actividad',
    'GET /api/performance': 'Ver rendimiento',
    'POST /api/performance/report': 'Generar reporte de rendimiento',
}

# {nombre: {calls, errors, total_time, max_time}}
_function_stats = {}
_stats_lock = threading.Lock()
_log_lock = threading.Lock()


# ═══════════════════════════════════════════════════════════════════════════
# ESCRITURA
# ═══════════════════════════════════════════════════════════════════════════

def _now():
    return datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def _severity(time_ms):
    """None, 'LENTO' o 'CRÍTICO' según los umbrales."""
    if time_ms >= THRESHOLD_CRITICAL:
        return 'CRÍTICO'
    if time_ms >= THRESHOLD_WARNING:
        return 'LENTO'
    return None


def _append(filepath, line):
    # El profiling nunca rompe una petición: si no se puede escribir, se avisa
    try:
        with _log_lock:
            os.makedirs(os.path.dirname(filepath), exist_ok=True)
            with open(filepath, 'a', encoding='utf-8') as f:
                f.write(line.rstrip('\n') + '\n')
    except OSError as e:
        print(f"[ADVERTENCIA] No se pudo escribir {os.path.basename(filepath)}: {e}")


def _get_route_name(method, path, rule=None):
    """Nombre legible de la ruta; si no está en ROUTE_NAMES, 'MÉTODO ruta'."""
    for candidate in (path, rule):
        if candidate and f"{method} {candidate}" in ROUTE_NAMES:
            return ROUTE_NAMES[f"{method} {candidate}"]
    return f"{method} {path}"


# ═══════════════════════════════════════════════════════════════════════════
# RUTAS
# ═══════════════════════════════════════════════════════════════════════════

def log_request(method, path, rule, time_ms, status=200, user=None):
    """
    Registra una petición:
        2024-05-10 09:00:00 | Ver panel principal | GET /api/dashboard | 200 | 12 ms | ana

    Si supera el umbral también va a slow_routes.log con su severidad.
    """
    line = (f"{_now()} | {_get_route_name(method, path, rule)} | {method} {path} | "
            f"{status} | {time_ms:.0f} ms | {user or 'anónimo'}")
    _append(PERFORMANCE_LOG, line)

    severity = _severity(time_ms)
    if severity:
        limit = THRESHOLD_CRITICAL if severity == 'CRÍTICO' else THRESHOLD_WARNING
        _append(SLOW_ROUTES_LOG, f"[{severity}] {line} (umbral {limit} ms)")


def init_profiling(app):
    """
    Registra los hooks de medición en la app Flask.

    Uso:
        from flowi_ledger.performance_logger import init_profiling
        init_profiling(app)
    """
    if not ENABLE_PROFILING:
        return

    from flask import g, request, session

    @app.before_request
    def _start_timer():
        g.profiling_start = time.perf_counter()

    @app.after_request
    def _log_request(response):
        start = g.pop('profiling_start', None)
        if start is None:
            return response
        elapsed = (time.perf_counter() - start) * 1000
        log_request(
            request.method,
            request.path,
            str(request.url_rule) if request.url_rule else None,
            elapsed,
            response.status_code,
            session.get('user') or request.headers.get('X-User'),
        )
        return response


# ═══════════════════════════════════════════════════════════════════════════
# FUNCIONES
# ═══════════════════════════════════════════════════════════════════════════

def _record_call(func_name, elapsed_ms, failed):
    with _stats_lock:
        stats = _function_stats.setdefault(
            func_name, {'calls': 0, 'errors': 0, 'total_time': 0.0, 'max_time': 0.0}
        )
        stats['calls'] += 1
        stats['errors'] += 1 if failed else 0
        stats['total_time'] += elapsed_ms
        stats['max_time'] = max(stats['max_time'], elapsed_ms)

    severity = _severity(elapsed_ms)
    if severity:
        _append(SLOW_FUNCTIONS_LOG, f"[{severity}] {_now()} | {func_name} | {elapsed_ms:.0f} ms")


def profile_function(func=None, name=None):
    """
    Decorador: cuenta llamadas, errores, tiempo promedio y máximo.

        @profile_function
        def calcular(): ...

        @profile_function(name="Armar panel principal")
        def build_dashboard_snapshot(...): ...
    """
    def decorator(fn):
        if not ENABLE_PROFILING:
            return fn

        func_name = name or fn.__name__

        @wraps(fn)
        def wrapper(*args, **kwargs):
            start = time.perf_counter()
            failed = True
            try:
                result = fn(*args, **kwargs)
                failed = False
                return result
            finally:
                _record_call(func_name, (time.perf_counter() - start) * 1000, failed)

        return wrapper

    if func is not None:
        return decorator(func)
    return decorator


def get_function_stats():
    """{nombre: {calls, errors, avg_time, max_time}} con tiempos en ms."""
    with _stats_lock:
        return {
            func_name: {
                'calls': stats['calls'],
                'errors': stats['errors'],
                'avg_time': round(stats['total_time'] / stats['calls'], 2) if stats['calls'] else 0,
                'max_time': round(stats['max_time'], 2),
            }
            for func_name, stats in _function_stats.items()
        }


def write_function_stats_report():
    """Agrega a slow_functions.log una tabla de funciones (más lenta primero)."""
    stats = get_function_stats()
    if not stats:
        return

    lines = [f"=== Reporte de funciones {_now()} ===",
             f"{'Función':<40} {'Llamadas':>8} {'Errores':>8} {'Prom. ms':>9} {'Máx. ms':>9}"]
    for func_name, data in sorted(stats.items(), key=lambda item: item[1]['avg_time'], reverse=True):
        flag = _severity(data['avg_time']) or ('PICOS' if _severity(data['max_time']) else '')
        lines.append(f"{func_name[:40]:<40} {data['calls']:>8} {data['errors']:>8} "
                     f"{data['avg_time']:>9.0f} {data['max_time']:>9.0f} {flag}".rstrip())
    _append(SLOW_FUNCTIONS_LOG, '\n'.join(lines))


def reset_stats():
    with _stats_lock:
        _function_stats.clear()


def get_log_summary():
    """{nombre: {exists, size_kb, lines}} de cada archivo de log."""
    summary = {}
    for label, path in (('performance', PERFORMANCE_LOG),
                        ('slow_routes', SLOW_ROUTES_LOG),
                        ('slow_functions', SLOW_FUNCTIONS_LOG)):
        if not os.path.exists(path):
            summary[label] = {'exists': False, 'size_kb': 0, 'lines': 0}
            continue
        with open(path, 'r', encoding='utf-8') as f:
            line_count = sum(1 for _ in f)
        summary[label] = {
            'exists': True,
            'size_kb': round(os.path.getsize(path) / 1024, 2),
            'lines': line_count,
        }
    return summary


__all__ = [
    'ENABLE_PROFILING',
    'init_profiling',
    'log_request',
    'profile_function',
    'get_function_stats',
    'write_function_stats_report',
    'reset_stats',
    'get_log_summary',
]
