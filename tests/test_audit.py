from chartfeed.audit import AuditLogger


def test_log_and_filter_by_event_type(tmp_path):
    audit = AuditLogger(str(tmp_path / "logs" / "audit.log"))
    audit.log("request", "GET /symbols", {"status_code": 200})
    audit.log("cache_hit", "/symbols")
    rows = audit.read()
    assert [r["event_type"] for r in rows] == ["request", "cache_hit"]
    assert audit.read("cache_hit")[0]["context"] == {}


def test_read_skips_truncated_lines(tmp_path):
    path = tmp_path / "audit.log"
    audit = AuditLogger(str(path))
    audit.log("request", "GET /health")
    with path.open("a", encoding="utf-8") as f:
        f.write('{"ts": "2024-01-01T00:00:00+00:00", "event_ty\n')
    audit.log("request_error", "HTTP 500 for /health")
    assert [r["event_type"] for r in audit.read()] == ["request", "request_error"]


def test_read_missing_file(tmp_path):
    audit = AuditLogger(str(tmp_path / "audit.log"))
    assert audit.read() == []
