import json
import os
import tempfile
from datetime import datetime, timezone

import pytest

# Los logs de rendimiento de la suite no van a la carpeta del paquete
os.environ.setdefault('FLOWI_LOGS_DIR', tempfile.mkdtemp(prefix='flowi-logs-'))
# Día de calendario fijo en UTC salvo que el test elija otra zona
os.environ.setdefault('FLOWI_TIMEZONE', 'UTC')

from flowi_ledger.app_container import AppContainer  # noqa: E402
from flowi_ledger.models import Counterparty  # noqa: E402


def utc(year, month, day, hour=10, minute=0):
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


def write_json(directory, name, data):
    path = os.path.join(str(directory), name)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(data, f)
    return path


@pytest.fixture
def customers():
    return [
        Counterparty(id='1', name='Empresa ABC C.A.', is_active=True, payment_terms_days=30),
        Counterparty(id='2', name='Comercial XYZ', is_active=True, payment_terms_days=15),
        Counterparty(id='3', name='Cliente Inactivo', is_active=False, payment_terms_days=30),
    ]


@pytest.fixture
def suppliers():
    return [
        Counterparty(id='supplier-1', name='Proveedor Ejemplo 1', is_active=True, payment_terms_days=30),
    ]


@pytest.fixture
def container(tmp_path):
    AppContainer.reset_instance()
    c = AppContainer(str(tmp_path))
    yield c
    AppContainer.reset_instance()
