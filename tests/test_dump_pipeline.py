from __future__ import annotations

import io
import os
import sqlite3
import tarfile
from pathlib import Path

import pytest
import requests

from ingest_kit.batch_loader import BatchLoader, iter_batches
from ingest_kit.downloader import download_file
from ingest_kit.dump_load import process_data_dump, run_dump_load
from ingest_kit.errors import ExtractError, HTTPError, InsertError, NetworkError, StoreError
from ingest_kit.extractor import extract_tar_gz, list_extracted
from ingest_kit.http_engine import HttpEngine
from ingest_kit.schema import reset_schema, schema_snapshot, table_columns
from ingest_kit.settings import DumpSettings
from ingest_kit.store import DumpStore


CUSTOMERS_HEADER = "name,email,phone,address,organization_id"
ORGS_HEADER = "name,industry,address"


def _customers_csv(path: Path, n: int) -> None:
    lines = [CUSTOMERS_HEADER]
    lines += [f"Customer {i},c{i}@example.com,555-{i:04d},{i} Main St,{i % 7}" for i in range(1, n + 1)]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _orgs_csv(path: Path, n: int) -> None:
    lines = [ORGS_HEADER] + [f"Org {i},Industry {i % 3},{i} Market St" for i in range(1, n + 1)]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")


def _make_tar_gz(archive: Path, files: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tar:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
    archive.write_bytes(buf.getvalue())
    return buf.getvalue()


# ---- downloader ----

class _BrokenRaw:
    """Body stream that dies after the first chunk."""

    def __init__(self, first: bytes) -> None:
        self.first = first
        self.sent = False

    def read(self, *args, **kwargs):  # type: ignore[no-untyped-def]
        if not self.sent:
            self.sent = True
            return self.first
        raise requests.ConnectionError("connection reset by peer")

    def close(self) -> None:
        pass


class _Session:
    def __init__(self, *, status: int = 200, raw=None, exc: Exception | None = None) -> None:  # type: ignore[no-untyped-def]
        self.status = status
        self.raw = raw
        self.exc = exc

    def request(self, **kwargs):  # type: ignore[no-untyped-def]
        if self.exc is not None:
            raise self.exc
        r = requests.Response()
        r.status_code = self.status
        r.raw = self.raw if self.raw is not None else io.BytesIO(b"")
        r.url = kwargs["url"]
        return r

    def close(self) -> None:
        pass


def test_download_streams_body_to_disk(tmp_path: Path):
    body = os.urandom(200_000)
    dest = tmp_path / "tmp" / "dump.tar.gz"
    engine = HttpEngine(session=_Session(raw=io.BytesIO(body)))  # type: ignore[arg-type]

    n = download_file("https://example.com/dump.tar.gz", str(dest), engine=engine)

    assert n == len(body)
    assert dest.read_bytes() == body


def test_download_non_success_status_keeps_file(tmp_path: Path):
    dest = tmp_path / "dump.tar.gz"
    engine = HttpEngine(session=_Session(status=403, raw=io.BytesIO(b"denied")))  # type: ignore[arg-type]

    with pytest.raises(HTTPError) as ei:
        download_file("https://example.com/dump.tar.gz", str(dest), engine=engine)

    assert ei.value.status_code == 403
    assert dest.exists()
    assert dest.read_bytes() == b""


def test_download_transport_failure_mid_body_deletes_file(tmp_path: Path):
    dest = tmp_path / "dump.tar.gz"
    engine = HttpEngine(session=_Session(raw=_BrokenRaw(b"x" * 1024)))  # type: ignore[arg-type]

    with pytest.raises(NetworkError):
        download_file("https://example.com/dump.tar.gz", str(dest), engine=engine, chunk_size=1024)

    assert not dest.exists()


def test_download_connect_failure_deletes_file(tmp_path: Path):
    dest = tmp_path / "dump.tar.gz"
    engine = HttpEngine(session=_Session(exc=requests.ConnectionError("no route")))  # type: ignore[arg-type]

    with pytest.raises(NetworkError):
        download_file("https://example.com/dump.tar.gz", str(dest), engine=engine)

    assert not dest.exists()


# ---- extractor ----

def test_extract_tar_gz(tmp_path: Path):
    archive = tmp_path / "dump.tar.gz"
    _make_tar_gz(archive, {"dump/customers.csv": b"a\n1\n", "organizations.csv": b"b\n2\n"})
    out = tmp_path / "work"

    files = extract_tar_gz(str(archive), str(out))

    assert files == [out / "dump" / "customers.csv", out / "organizations.csv"]
    assert (out / "organizations.csv").read_bytes() == b"b\n2\n"
    assert list_extracted(str(out)) == [os.path.join("dump", "customers.csv"), "organizations.csv"]


def test_extract_rejects_non_gzip(tmp_path: Path):
    archive = tmp_path / "dump.tar.gz"
    archive.write_bytes(b"this is not gzip at all")
    with pytest.raises(ExtractError):
        extract_tar_gz(str(archive), str(tmp_path / "work"))


def test_extract_rejects_truncated_archive(tmp_path: Path):
    archive = tmp_path / "dump.tar.gz"
    blob = _make_tar_gz(archive, {"big.bin": os.urandom(64_000)})
    archive.write_bytes(blob[: len(blob) // 2])
    with pytest.raises(ExtractError):
        extract_tar_gz(str(archive), str(tmp_path / "work"))


def test_extract_rejects_path_traversal(tmp_path: Path):
    archive = tmp_path / "dump.tar.gz"
    _make_tar_gz(archive, {"../evil.csv": b"x"})
    with pytest.raises(ExtractError):
        extract_tar_gz(str(archive), str(tmp_path / "work"))
    assert not (tmp_path / "evil.csv").exists()


# ---- schema ----

def test_reset_schema_is_idempotent_and_destructive(tmp_path: Path):
    conn = sqlite3.connect(str(tmp_path / "db.sqlite"))
    try:
        reset_schema(conn)
        first = schema_snapshot(conn)
        with conn:
            conn.execute("INSERT INTO organizations(name, industry, address) VALUES('a','b','c')")

        reset_schema(conn)

        assert schema_snapshot(conn) == first
        assert conn.execute("SELECT COUNT(*) FROM organizations").fetchone()[0] == 0
        assert table_columns(conn, "organizations") == ["id", "name", "industry", "address"]
        assert table_columns(conn, "customers") == ["id", "name", "email", "phone", "address", "organization_id"]
    finally:
        conn.close()


# ---- batch loader ----

def test_iter_batches_sizes():
    assert [len(b) for b in iter_batches(range(250), 100)] == [100, 100, 50]
    assert [len(b) for b in iter_batches(range(200), 100)] == [100, 100]
    assert list(iter_batches([], 100)) == []


def test_load_250_rows_in_batches_of_100(tmp_path: Path, monkeypatch):
    csv_path = tmp_path / "customers.csv"
    _customers_csv(csv_path, 250)

    with DumpStore(str(tmp_path / "out" / "database.sqlite")) as store:
        store.reset_schema()
        calls: list[int] = []
        real_insert = store.insert_many

        def spy(table, columns, rows):  # type: ignore[no-untyped-def]
            calls.append(len(rows))
            return real_insert(table, columns, rows)

        monkeypatch.setattr(store, "insert_many", spy)
        stats = BatchLoader(store, batch_size=100).load_csv(str(csv_path), "customers")

        assert calls == [100, 100, 50]
        assert stats.batches == (100, 100, 50)
        assert stats.rows == 250
        assert store.count("customers") == 250
        rows = store.fetch_all("customers")
        assert rows[0]["name"] == "Customer 1"
        assert rows[0]["organization_id"] == "1"
        assert rows[-1] == {
            "id": 250,
            "name": "Customer 250",
            "email": "c250@example.com",
            "phone": "555-0250",
            "address": "250 Main St",
            "organization_id": str(250 % 7),
        }


def test_rejected_batch_raises_and_keeps_earlier_batches(tmp_path: Path):
    csv_path = tmp_path / "organizations.csv"
    lines = ["id," + ORGS_HEADER]
    for i in range(1, 151):
        # row 120 reuses primary key 5 -> second batch is rejected
        pk = 5 if i == 120 else i
        lines.append(f"{pk},Org {i},Retail,{i} Market St")
    csv_path.write_text("\n".join(lines) + "\n", encoding="utf-8")

    with DumpStore(str(tmp_path / "db.sqlite")) as store:
        store.reset_schema()
        with pytest.raises(InsertError) as ei:
            BatchLoader(store).load_csv(str(csv_path), "organizations")
        assert ei.value.batch_idx == 1
        assert ei.value.rows == 50
        assert store.count("organizations") == 100


def test_unknown_csv_column_is_insert_error(tmp_path: Path):
    csv_path = tmp_path / "organizations.csv"
    csv_path.write_text("name,industry,address,ceo\nA,B,C,D\n", encoding="utf-8")
    with DumpStore(str(tmp_path / "db.sqlite")) as store:
        store.reset_schema()
        with pytest.raises(InsertError):
            BatchLoader(store).load_csv(str(csv_path), "organizations")


# ---- whole pipeline ----

def test_run_dump_load_end_to_end(tmp_path: Path):
    src = tmp_path / "src"
    src.mkdir()
    _customers_csv(src / "customers.csv", 120)
    _orgs_csv(src / "organizations.csv", 30)
    archive_bytes = _make_tar_gz(
        tmp_path / "source.tar.gz",
        {
            "customers.csv": (src / "customers.csv").read_bytes(),
            "organizations.csv": (src / "organizations.csv").read_bytes(),
        },
    )

    settings = DumpSettings(work_dir=str(tmp_path / "tmp"), db_path=str(tmp_path / "out" / "database.sqlite"))
    engine = HttpEngine(session=_Session(raw=io.BytesIO(archive_bytes)))  # type: ignore[arg-type]

    summary = run_dump_load(settings, engine=engine)

    assert summary["downloaded_bytes"] == len(archive_bytes)
    assert "customers.csv" in summary["extracted"]
    assert summary["tables"] == [
        {"table": "customers", "rows": 120, "batches": [100, 20]},
        {"table": "organizations", "rows": 30, "batches": [30]},
    ]
    with DumpStore(settings.db_path) as store:
        assert store.count("customers") == 120
        assert store.count("organizations") == 30


def test_process_data_dump_logs_instead_of_raising(tmp_path: Path, caplog, monkeypatch):
    from ingest_kit import dump_load

    settings = DumpSettings(work_dir=str(tmp_path / "tmp"), db_path=str(tmp_path / "db.sqlite"))
    (tmp_path / "tmp").mkdir()
    (tmp_path / "tmp" / "dump.tar.gz").write_bytes(b"garbage")
    # no network: pretend the download already happened
    monkeypatch.setattr(dump_load, "fetch_dump", lambda st, engine=None: 0)

    with caplog.at_level("ERROR"):
        assert process_data_dump(settings) is None
    assert "Error processing data dump" in caplog.text


def test_store_on_a_directory_path_is_store_error(tmp_path: Path):
    as_dir = tmp_path / "database.sqlite"
    as_dir.mkdir()
    with pytest.raises(StoreError):
        with DumpStore(str(as_dir)) as store:
            store.reset_schema()


def test_store_count_on_missing_table_is_store_error(tmp_path: Path):
    with DumpStore(str(tmp_path / "db.sqlite")) as store:
        with pytest.raises(StoreError):
            store.count("customers")


def test_process_data_dump_logs_unopenable_database(tmp_path: Path, caplog, monkeypatch):
    from ingest_kit import dump_load

    work = tmp_path / "tmp"
    work.mkdir()
    _make_tar_gz(work / "dump.tar.gz", {"customers.csv": b"name\n", "organizations.csv": b"name\n"})
    db_dir = tmp_path / "out" / "database.sqlite"
    db_dir.mkdir(parents=True)
    settings = DumpSettings(work_dir=str(work), db_path=str(db_dir))
    monkeypatch.setattr(dump_load, "fetch_dump", lambda st, engine=None: 0)

    with caplog.at_level("ERROR"):
        assert process_data_dump(settings) is None
    assert "Error processing data dump" in caplog.text
    assert str(db_dir) in caplog.text
