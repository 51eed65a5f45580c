# ==============================================================================
# REPOSITORIO BASE - Un archivo JSON por colección
# ==============================================================================
# Se lee la colección entera y se reemplaza entera; no hay parches parciales.
#
#   archivo inexistente  → colección vacía
#   JSON roto            → se mueve a <archivo>.corrupt-<fecha> + PersistenceError
#   tipo inesperado      → también se aparta + PersistenceError
#   fallo de disco       → PersistenceError
# ==============================================================================

import json
import os
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List

from flowi_ledger.errors import PersistenceError


class BaseRepository(ABC):
    """Lectura y escritura atómica de un archivo JSON."""

    # Compartido por todos los repositorios: un proceso, un escritor a la vez
    _file_lock = threading.RLock()

    def __init__(self, file_path: str):
        self.file_path = file_path

    @abstractmethod
    def _empty_data(self) -> Any:
        """Colección vacía ({} o [])."""

    def exists(self) -> bool:
        return os.path.exists(self.file_path)

    def _set_aside(self) -> str:
        """Renombra el archivo ilegible; devuelve el nuevo nombre o '' si no se pudo."""
        target = "{}.corrupt-{}".format(self.file_path, datetime.now().strftime('%Y%m%d%H%M%S'))
        try:
            os.replace(self.file_path, target)
        except OSError:
            return ''
        return target

    def _fail(self, reason: str, cause: BaseException = None) -> PersistenceError:
        return PersistenceError(self.file_path, reason, cause)

    def _read_raw(self) -> Any:
        empty = self._empty_data()
        with self._file_lock:
            if not self.exists():
                return empty
            try:
                with open(self.file_path, encoding='utf-8') as f:
                    data = json.load(f)
            except json.JSONDecodeError as e:
                moved = self._set_aside()
                detail = f"JSON inválido ({e.msg}, línea {e.lineno})"
                if moved:
                    detail = f"{detail}; apartado en {os.path.basename(moved)}"
                raise self._fail(detail, e) from e
            except OSError as e:
                raise self._fail(str(e), e) from e

            expected = type(empty)
            if not isinstance(data, expected):
                moved = self._set_aside()
                detail = f"se esperaba {expected.__name__}, se encontró {type(data).__name__}"
                if moved:
                    detail = f"{detail}; apartado en {os.path.basename(moved)}"
                raise self._fail(detail)
        return data

    def _write_raw(self, data: Any) -> None:
        scratch = f"{self.file_path}.tmp"
        with self._file_lock:
            try:
                folder = os.path.dirname(self.file_path)
                if folder:
                    os.makedirs(folder, exist_ok=True)
                with open(scratch, 'w', encoding='utf-8') as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                # Quien lea ve el archivo viejo o el nuevo, nunca uno a medias
                os.replace(scratch, self.file_path)
            except (OSError, TypeError, ValueError) as e:
                if os.path.exists(scratch):
                    os.remove(scratch)
                raise self._fail(str(e), e) from e


class DictRepository(BaseRepository):
    """Archivo con un objeto en la raíz, p. ej. settings.json."""

    def _empty_data(self) -> Dict:
        return {}

    def get_all(self) -> Dict[str, Any]:
        return self._read_raw()

    def save_all(self, data: Dict[str, Any]) -> None:
        self._write_raw(data)

    def get(self, key: str, default: Any = None) -> Any:
        return self.get_all().get(key, default)


class ListRepository(BaseRepository):
    """Archivo con una lista en la raíz, p. ej. receivables.json."""

    def _empty_data(self) -> List:
        return []

    def get_all(self) -> List[Dict[str, Any]]:
        return self._read_raw()

    def save_all(self, data: List[Dict[str, Any]]) -> None:
        self._write_raw(data)
