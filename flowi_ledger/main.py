from flask import Flask, request, session
import os

# Sistema de profiling interno
from flowi_ledger.performance_logger import (
    init_profiling,
    get_function_stats,
    get_log_summary,
    write_function_stats_report,
)

# ═══════════════════════════════════════════════════════════════════════════
# CONTENEDOR DE DEPENDENCIAS - Servicios y Repositorios
# ═══════════════════════════════════════════════════════════════════════════
# Las rutas solo traducen HTTP ↔ servicios: la lógica de negocio vive en
# services/ y los datos en repositories/.
# ═══════════════════════════════════════════════════════════════════════════
from flowi_ledger.app_container import AppContainer, get_container
from flowi_ledger.errors import InvalidRate, InvalidTransition, PersistenceError, ValidationError
from flowi_ledger.models import MonetaryAmount, ObligationKind, local_now
from flowi_ledger.services.currency import format_currency, local_price, normalize_currency
from flowi_ledger.services.obligation_service import (
    filter_obligations,
    outstanding_totals,
    totals_by_status_and_currency,
)

app = Flask(__name__)

# ═══════════════════════════════════════════════════════════════════════════
# INICIALIZAR SISTEMA DE PROFILING
# ═══════════════════════════════════════════════════════════════════════════
# Mide rendimiento de rutas y funciones. Logs en /logs/
# Para desactivar: FLOWI_PROFILING=0
init_profiling(app)


# ═══════════════════════════════════════════════════════════════════════════════
# MODO PRODUCCIÓN
# ═══════════════════════════════════════════════════════════════════════════════
# 1 = Sin claves por defecto aceptadas en silencio
# 0 = Modo desarrollo
PRODUCTION_MODE = os.environ.get('FLOWI_PRODUCTION_MODE', '0') == '1'

# ═══════════════════════════════════════════════════════════════════════════════
# CONFIGURACIÓN
# ═══════════════════════════════════════════════════════════════════════════════
# SECRET_KEY: En producción DEBE definirse via variable de entorno
# Comando: export FLOWI_SECRET_KEY="tu_clave_secreta_muy_larga_y_aleatoria"
_DEFAULT_SECRET = "flowi_dev_secret_key_change_in_production"
_SECRET_KEY = os.environ.get("FLOWI_SECRET_KEY")

if PRODUCTION_MODE and not _SECRET_KEY:
    print("[ADVERTENCIA] FLOWI_PRODUCTION_MODE activo sin FLOWI_SECRET_KEY definida")
    print("[ADVERTENCIA] Define la variable de entorno para mayor seguridad")

app.secret_key = _SECRET_KEY or _DEFAULT_SECRET


def _env_int(name):
    value = os.environ.get(name)
    if value in (None, ''):
        return None
    try:
        return int(value)
    except ValueError:
        print(f"[ADVERTENCIA] {name}={value!r} no es un entero, se ignora")
        return None


# Carpeta con los JSON (ventas, productos, cuentas, tasa, auditoría)
app.config['DATA_DIR'] = os.environ.get('FLOWI_DATA_DIR') or os.path.dirname(os.path.abspath(__file__))
# Umbral global de stock bajo (vacío → reorder_level de cada producto)
app.config['LOW_STOCK_THRESHOLD'] = _env_int('FLOWI_LOW_STOCK_THRESHOLD')

# Colecciones expuestas en la URL → tipo de cuenta
KINDS = {
    'receivables': ObligationKind.RECEIVABLE.value,
    'payables': ObligationKind.PAYABLE.value,
}


def container():
    """Contenedor apuntando a la carpeta de datos configurada."""
    current = get_container(app.config['DATA_DIR'], app.config['LOW_STOCK_THRESHOLD'])
    if current.base_path != app.config['DATA_DIR']:
        # La carpeta cambió (tests, recarga de configuración)
        AppContainer.reset_instance()
        current = get_container(app.config['DATA_DIR'], app.config['LOW_STOCK_THRESHOLD'])
    return current


def current_user():
    """La identidad la resuelve otro módulo: sesión o cabecera X-User."""
    return session.get('user') or request.headers.get('X-User') or 'sistema'


def obligation_json(obligation):
    data = obligation.to_dict()
    data['status_label'] = obligation.status_label
    data['amount_display'] = format_currency(obligation.amount, obligation.currency)
    return data


def service_for(kind):
    if kind not in KINDS:
        return None
    return container().obligation_service(KINDS[kind])


# ═══════════════════════════════════════════════════════════════════════════════
# MANEJO DE ERRORES - Siempre JSON {"success": False, "error": ...}
# ═══════════════════════════════════════════════════════════════════════════════

@app.errorhandler(ValidationError)
def handle_validation_error(e):
    # Un ID inexistente es "no encontrado", el resto son datos inválidos
    return e.to_dict(), 404 if e.field == 'id' else 400


@app.errorhandler(InvalidRate)
def handle_invalid_rate(e):
    return e.to_dict(), 400


@app.errorhandler(InvalidTransition)
def handle_invalid_transition(e):
    return e.to_dict(), 409


@app.errorhandler(PersistenceError)
def handle_persistence_error(e):
    print(f"[ERROR] {e}")
    return {"success": False, "error": "No se pudo acceder a los datos guardados"}, 500


@app.after_request
def set_security_headers(response):
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'
    return response


# ═══════════════════════════════════════════════════════════════════════════════
# TASA DE CAMBIO
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/api/exchange-rate", methods=["GET"])
def get_exchange_rate():
    rate = container().exchange_rate_manager.get_current_rate()
    return {"success": True, "rate": rate.to_dict() if rate else None}


@app.route("/api/exchange-rate", methods=["POST"])
def set_exchange_rate():
    """Actualizar tasa: {"rate": 36.5, "source": "manual"}"""
    data = request.get_json(silent=True) or {}
    rate = container().exchange_rate_manager.set_rate(
        data.get("rate"),
        source=data.get("source") or "manual",
    )
    return {
        "success": True,
        "message": f"Tasa actualizada: 1 USD = {format_currency(rate.usd_to_local, 'VES')}",
        "rate": rate.to_dict(),
    }


@app.route("/api/exchange-rate/history", methods=["GET"])
def exchange_rate_history():
    history = container().exchange_rate_manager.get_history()
    return {"success": True, "history": [r.to_dict() for r in history]}


@app.route("/api/convert", methods=["POST"])
def convert_amount():
    """Convertir: {"amount": 10, "from": "USD", "to": "VES", "rate": 36.5 (opcional)}"""
    data = request.get_json(silent=True) or {}
    manager = container().exchange_rate_manager
    rate = data.get("rate")
    if rate is None:
        rate = manager.current_value()

    source = normalize_currency(data.get("from"))
    target = normalize_currency(data.get("to"))
    result = MonetaryAmount(manager.convert(data.get("amount"), source, target, rate), target)
    return {
        "success": True,
        **result.to_dict(),
        "source": MonetaryAmount(float(data.get("amount")), source).to_dict(),
        "rate": rate,
        "formatted": format_currency(result.amount, result.currency),
    }


# ═══════════════════════════════════════════════════════════════════════════════
# CUENTAS POR COBRAR / PAGAR
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/api/<kind>", methods=["GET"])
def list_obligations(kind):
    """Lista reconciliada + totales. Filtros: q, status, currency, type."""
    service = service_for(kind)
    if service is None:
        return {"success": False, "error": "Colección no encontrada"}, 404

    obligations = service.list_obligations()
    filtered = filter_obligations(
        obligations,
        search=request.args.get("q", ""),
        status=request.args.get("status", "all"),
        currency=request.args.get("currency", "all"),
        counterparty_type=request.args.get("type", "all"),
    )
    response = {
        "success": True,
        "obligations": [obligation_json(o) for o in filtered],
        "count": len(filtered),
        "totals": totals_by_status_and_currency(obligations),
        "outstanding": outstanding_totals(obligations),
    }
    if service.last_error is not None:
        response["warning"] = "No se pudieron leer las cuentas guardadas"
    return response


@app.route("/api/<kind>", methods=["POST"])
def create_obligation(kind):
    service = service_for(kind)
    if service is None:
        return {"success": False, "error": "Colección no encontrada"}, 404

    data = request.get_json(silent=True) or {}
    obligation = service.create(data, user=current_user())
    return {"success": True, "obligation": obligation_json(obligation)}, 201


@app.route("/api/<kind>/next-reference", methods=["GET"])
def next_reference(kind):
    service = service_for(kind)
    if service is None:
        return {"success": False, "error": "Colección no encontrada"}, 404
    return {"success": True, "reference_number": service.next_reference_number()}


@app.route("/api/<kind>/reconcile", methods=["POST"])
def reconcile_obligations(kind):
    service = service_for(kind)
    if service is None:
        return {"success": False, "error": "Colección no encontrada"}, 404
    changed = service.reconcile()
    return {"success": True, "changed": changed}


@app.route("/api/<kind>/<obligation_id>", methods=["GET"])
def get_obligation(kind, obligation_id):
    service = service_for(kind)
    if service is None:
        return {"success": False, "error": "Colección no encontrada"}, 404

    obligation = service.get(obligation_id)
    if obligation is None:
        return {"success": False, "error": "Cuenta no encontrada"}, 404
    return {"success": True, "obligation": obligation_json(obligation)}


@app.route("/api/<kind>/<obligation_id>", methods=["PUT"])
def update_obligation(kind, obligation_id):
    service = service_for(kind)
    if service is None:
        return {"success": False, "error": "Colección no encontrada"}, 404

    data = request.get_json(silent=True) or {}
    obligation = service.update(obligation_id, data, user=current_user())
    return {"success": True, "obligation": obligation_json(obligation)}


@app.route("/api/<kind>/<obligation_id>", methods=["DELETE"])
def delete_obligation(kind, obligation_id):
    """Eliminar es idempotente: una cuenta inexistente no es error."""
    service = service_for(kind)
    if service is None:
        return {"success": False, "error": "Colección no encontrada"}, 404

    removed = service.delete(obligation_id, user=current_user())
    return {"success": True, "deleted": removed is not None}


@app.route("/api/<kind>/<obligation_id>/pay", methods=["POST"])
def pay_obligation(kind, obligation_id):
    service = service_for(kind)
    if service is None:
        return {"success": False, "error": "Colección no encontrada"}, 404

    obligation = service.mark_paid(obligation_id, user=current_user())
    return {"success": True, "obligation": obligation_json(obligation)}


@app.route("/api/<kind>/<obligation_id>/cancel", methods=["POST"])
def cancel_obligation(kind, obligation_id):
    service = service_for(kind)
    if service is None:
        return {"success": False, "error": "Colección no encontrada"}, 404

    obligation = service.cancel(obligation_id, user=current_user())
    return {"success": True, "obligation": obligation_json(obligation)}


@app.route("/api/counterparties", methods=["GET"])
def list_counterparties():
    directory = container().directory_repo
    return {
        "success": True,
        "customers": [c.to_dict() for c in directory.load_customers()],
        "suppliers": [s.to_dict() for s in directory.load_suppliers()],
    }


# ═══════════════════════════════════════════════════════════════════════════════
# PANEL, ANALÍTICA E INVENTARIO
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/api/dashboard", methods=["GET"])
def dashboard():
    snapshot = container().metrics_service.get_dashboard()
    return {"success": True, "dashboard": snapshot}


@app.route("/api/analytics", methods=["GET"])
def analytics():
    """Analítica de ventas. Rango opcional: from, to (ISO, inclusivo)."""
    c = container()
    from_date = request.args.get("from") or None
    to_date = request.args.get("to") or None
    sales = c.sales_repo.get_sales_by_date_range(from_date, to_date) if (from_date or to_date) else None
    data = c.analytics.get_analytics_data(
        sales=sales,
        now=local_now(),
        rate=c.exchange_rate_manager.current_value(),
        low_stock_threshold=c.low_stock_threshold,
    )
    return {"success": True, "analytics": data}


@app.route("/api/inventory", methods=["GET"])
def inventory():
    """Catálogo con precio en bolívares a la tasa vigente. Filtro: q."""
    c = container()
    rate = c.exchange_rate_manager.current_value()
    products = c.product_repo.search_by_name(request.args.get("q", ""))
    low_stock_ids = {p.id for p in c.analytics.low_stock_products(products, c.low_stock_threshold)}

    items = []
    for product in products:
        item = product.to_dict()
        if rate or product.price_ves:
            item["price_local"] = local_price(product.price_usd, rate, product.price_ves)
        else:
            item["price_local"] = None
        item["low_stock"] = product.id in low_stock_ids
        item["out_of_stock"] = product.stock == 0
        items.append(item)

    return {
        "success": True,
        "products": items,
        "valuation": c.analytics.inventory_valuation(products, rate),
    }


# ═══════════════════════════════════════════════════════════════════════════════
# AUDITORÍA Y RENDIMIENTO
# ═══════════════════════════════════════════════════════════════════════════════

@app.route("/api/audit", methods=["GET"])
def audit_logs():
    """Registro de actividad. Filtros: q, type, related_id, limit."""
    try:
        limit = int(request.args.get("limit", 200))
    except ValueError:
        limit = 200
    logs = container().audit_service.search(
        query=request.args.get("q", ""),
        log_type=request.args.get("type") or None,
        related_id=request.args.get("related_id") or None,
        limit=max(1, limit),
    )
    return {"success": True, "logs": logs, "types": container().audit_service.get_log_types()}


@app.route("/api/performance", methods=["GET"])
def performance():
    return {"success": True, "functions": get_function_stats(), "logs": get_log_summary()}


@app.route("/api/performance/report", methods=["POST"])
def performance_report():
    """Vuelca las estadísticas de funciones a slow_functions.log"""
    write_function_stats_report()
    return {"success": True, "logs": get_log_summary()}


if __name__ == "__main__":
    # En producción usar WSGI (gunicorn wsgi:app)
    DEBUG = os.environ.get('FLASK_DEBUG', '0') == '1'
    HOST = os.environ.get('FLASK_HOST', '0.0.0.0')
    PORT = int(os.environ.get('FLASK_PORT', 5000))

    if not DEBUG:
        print(f"\n{'='*50}")
        print(f"  Servidor iniciado en http://{HOST}:{PORT}")
        print(f"  Datos en: {app.config['DATA_DIR']}")
        print(f"{'='*50}\n")

    app.run(host=HOST, port=PORT, debug=DEBUG)
