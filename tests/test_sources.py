import io
import tracemalloc
import zipfile

import pytest

from csvcodec.sources import decode_bytes, iter_zip_records, open_records


def test_decode_bytes_strips_utf8_bom():
    text, report = decode_bytes("\ufeffa,b\n".encode("utf-8"))
    assert text == "a,b\n"
    assert report["decode_fallback"] is False

def test_decode_bytes_plain_ascii():
    text, report = decode_bytes(b"date,close\n2024-01-02,185.64\n")
    assert text == "date,close\n2024-01-02,185.64\n"

def test_open_records_detects_encoding(tmp_path):
    path = tmp_path / "prices.csv"
    path.write_bytes('name,city\nPaul,"Montréal"\n'.encode("utf-8"))
    assert list(open_records(path)) == [["name", "city"], ["Paul", "Montréal"]]

def test_open_records_explicit_encoding(tmp_path):
    path = tmp_path / "latin1.csv"
    path.write_bytes(b"id,name\n1,caf\xe9\n")
    assert list(open_records(path, encoding="latin-1")) == [["id", "name"], ["1", "café"]]

def test_open_records_custom_separator(tmp_path):
    path = tmp_path / "semi.csv"
    path.write_text("a;b\n1;\n", encoding="utf-8")
    assert list(open_records(path, field_separator=";")) == [["a", "b"], ["1", ""]]

def test_open_records_missing_file():
    with pytest.raises(FileNotFoundError):
        list(open_records("/nonexistent/file.csv", encoding="utf-8"))

def test_open_records_early_close(tmp_path):
    path = tmp_path / "many.csv"
    path.write_text("1\n2\n3\n", encoding="utf-8")
    rows = open_records(path, encoding="utf-8")
    assert next(rows) == ["1"]
    rows.close()

def test_open_records_streams_large_file(tmp_path):
    path = tmp_path / "large.csv"
    line = "2024-01-02,AAPL,185.64,186.10,183.92,185.14,82488700\n"
    with open(path, "w", encoding="utf-8", newline="") as fp:
        for _ in range(200_000):
            fp.write(line)
    assert path.stat().st_size > 10_000_000

    decode_bytes(b"warm,up\n")
    tracemalloc.start()
    try:
        rows = open_records(path)
        first = next(rows)
        _, peak = tracemalloc.get_traced_memory()
        rows.close()
    finally:
        tracemalloc.stop()

    assert first == ["2024-01-02", "AAPL", "185.64", "186.10", "183.92", "185.14", "82488700"]
    assert peak < 2_000_000

def test_open_records_keeps_crlf_inside_quotes(tmp_path):
    path = tmp_path / "crlf.csv"
    path.write_bytes(b'id,note\r\n1,"line one\r\nline two"\r\n2,"cr\ronly"\r\n')
    assert list(open_records(path)) == [
        ["id", "note"],
        ["1", "line one\r\nline two"],
        ["2", "cr\ronly"],
    ]

def test_iter_zip_records_keeps_crlf_inside_quotes():
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("q.csv", b'"a\r\nb",c\r\n')
    assert list(iter_zip_records(buf.getvalue())) == [("q.csv", ["a\r\nb", "c"])]

def test_iter_zip_records_reads_only_csv_members():
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr("a.csv", "x,y\n1,2\n")
        zf.writestr("readme.txt", "ignore,me\n")
        zf.writestr("b.CSV", '"q\nr"\n')

    records = list(iter_zip_records(buf.getvalue()))
    assert records == [
        ("a.csv", ["x", "y"]),
        ("a.csv", ["1", "2"]),
        ("b.CSV", ["q\nr"]),
    ]
