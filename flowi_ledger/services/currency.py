# ==============================================================================
# UTILIDADES DE MONEDA
# ==============================================================================
# Conversión, redondeo y formato compartidos por todos los servicios.
#
# REGLA PRINCIPAL: la conversión es explícita y recibe la tasa como
# parámetro. Ninguna función de este módulo lee una tasa global.
# ==============================================================================

import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from flowi_ledger.errors import InvalidRate, ValidationError
from flowi_ledger.models import Currency


CURRENCY_SYMBOLS = {
    Currency.USD.value: '$',
    Currency.VES.value: 'Bs.',
}


def normalize_currency(value: Any) -> Currency:
    """
    Convierte 'usd', 'VES', Currency.USD... en Currency.

    Raises:
        ValidationError: Si la moneda no es USD ni VES
    """
    if isinstance(value, Currency):
        return value
    try:
        return Currency(str(value or '').strip().upper())
    except ValueError:
        raise ValidationError('currency', f"moneda no soportada: {value!r}")


def validate_rate(value: Any) -> float:
    """
    Valida una tasa USD → local.

    Returns:
        La tasa como float

    Raises:
        InvalidRate: Si no es un número finito y positivo
    """
    if value is None or isinstance(value, bool):
        raise InvalidRate(value)
    try:
        rate = float(value)
    except (TypeError, ValueError):
        raise InvalidRate(value)
    if not math.isfinite(rate) or rate <= 0:
        raise InvalidRate(value)
    return rate


def _validate_amount(amount: Any) -> float:
    if isinstance(amount, bool):
        raise ValidationError('amount', 'monto inválido')
    try:
        value = float(amount)
    except (TypeError, ValueError):
        raise ValidationError('amount', 'monto inválido')
    if not math.isfinite(value):
        raise ValidationError('amount', 'monto inválido')
    return value


def convert(amount: Any, from_currency: Any, to_currency: Any, rate: Any) -> float:
    """
    Convierte un monto entre USD y VES con la tasa indicada.

    - Misma moneda → identidad (la tasa no se valida)
    - USD → VES    → amount * rate
    - VES → USD    → amount / rate

    No redondea: convertir ida y vuelta con la misma tasa devuelve el
    monto original (dentro de la tolerancia de punto flotante).
    """
    value = _validate_amount(amount)
    source = normalize_currency(from_currency)
    target = normalize_currency(to_currency)

    if source == target:
        return value

    usd_to_local = validate_rate(rate)
    if source == Currency.USD:
        return value * usd_to_local
    return value / usd_to_local


def round_money(amount: float, places: int = 2) -> float:
    """Redondeo comercial (mitad hacia arriba) a `places` decimales."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(amount)).quantize(quantum, rounding=ROUND_HALF_UP))


def currency_symbol(currency: Any) -> str:
    return CURRENCY_SYMBOLS[normalize_currency(currency).value]


def format_currency(amount: float, currency: Any) -> str:
    """
    Formatea un monto para mostrar.

    USD: $1,234.56
    VES: Bs. 1.234,56 (agrupación venezolana)
    """
    code = normalize_currency(currency)
    value = round_money(abs(amount))
    sign = '-' if amount < 0 and value != 0 else ''

    if code == Currency.USD:
        return f"{sign}${value:,.2f}"

    # 1,234.56 → 1.234,56
    text = f"{value:,.2f}".replace(',', '_').replace('.', ',').replace('_', '.')
    return f"{sign}Bs. {text}"


def local_price(price_usd: float, rate: Any, price_ves: Optional[float] = None) -> float:
    """
    Precio en moneda local de un producto.

    Si el producto tiene un precio en VES explícito se respeta;
    si no, se calcula con la tasa: price_usd * rate.
    """
    if price_ves:
        return float(price_ves)
    return convert(price_usd, Currency.USD, Currency.VES, rate)
