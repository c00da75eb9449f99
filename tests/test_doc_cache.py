from pathlib import Path
import sqlite3

from spectype.openapi.service import OpenAPIService
from spectype.store.doc_cache import SQLiteDocumentCache
from spectype.types.introspect import AnnotationSignatureSource

from sample_api import build_routes


def test_sqlite_cache_put_get_erase(tmp_path: Path):
    db = SQLiteDocumentCache.db_path_for_dir(tmp_path)
    cache = SQLiteDocumentCache(db)

    assert db.exists()
    assert cache.get("doc") is None
    assert cache.put_if_first("doc", b'{"a":1}') == b'{"a":1}'
    assert cache.put_if_first("doc", b'{"a":2}') == b'{"a":1}'
    assert cache.list_keys() == ["doc"]

    # a second handle on the same file sees the entry
    assert SQLiteDocumentCache(db).get("doc") == b'{"a":1}'

    cache.erase("doc")
    assert cache.get("doc") is None
    assert cache.list_keys() == []


def test_schema_version_recorded(tmp_path: Path):
    db = tmp_path / "cache.db"
    SQLiteDocumentCache(db)
    SQLiteDocumentCache(db)

    con = sqlite3.connect(str(db))
    try:
        rows = con.execute("SELECT value FROM meta WHERE key='schema_version'").fetchall()
    finally:
        con.close()
    assert rows == [(SQLiteDocumentCache.SCHEMA_VERSION,)]


def test_service_with_sqlite_cache(tmp_path: Path):
    cache = SQLiteDocumentCache(tmp_path / "cache.db")
    service = OpenAPIService(build_routes(), AnnotationSignatureSource(), title="Items", version="1", cache=cache)

    body = service.document_json()
    assert cache.list_keys() == [service.cache_key]
    assert cache.get(service.cache_key) == body

    service.invalidate()
    assert cache.list_keys() == []
