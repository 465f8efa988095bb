import json

from ghkeys.domain.models import AccountResult, ItemResult
from ghkeys.domain.reporting.collector import STATUS_FAILED, STATUS_PARTIAL, STATUS_SUCCESS, ReportCollector
from ghkeys.infra.artifacts.report_writer import createEmptyReport, finalizeReport, writeReportJson


def test_success_report():
    report = ReportCollector(run_id="r", command="sync")
    report.add_account(AccountResult(name="a", keys=["k1", "k2"], failures=[]))
    report.add_write("a", "ok", path="/home/a/.ssh/authorized_keys")
    report.finish(duration_ms=5)

    envelope = report.build()
    assert envelope.status == STATUS_SUCCESS
    assert envelope.summary.keys_total == 2
    assert envelope.summary.writes_ok == 1
    assert [item.kind for item in envelope.items] == ["account"]


def test_partial_report_counts_failed_items():
    failures = [
        ItemResult.failure("team", "MyOrg/Nope", "TEAM_NOT_FOUND", "missing"),
        ItemResult.failure("user", "ghost", "NOT_FOUND", "HTTP 404"),
    ]
    report = ReportCollector(run_id="r", command="sync")
    report.add_account(AccountResult(name="a", keys=["k1"], failures=failures))
    report.add_write("b", "skipped", message="local user not found")
    report.finish(duration_ms=1)

    assert report.has_failures
    assert report.status == STATUS_PARTIAL
    assert report.summary.teams_failed == 1
    assert report.summary.users_failed == 1
    assert report.summary.writes_skipped == 1


def test_write_failure_marks_partial():
    report = ReportCollector(run_id="r", command="sync")
    report.add_account(AccountResult(name="a", keys=[], failures=[]))
    report.add_write("a", "failed", path="/x", message="denied")
    report.finish()

    assert report.status == STATUS_PARTIAL


def test_explicit_failed_status_is_kept(tmp_path):
    report = createEmptyReport("r", "rate-limit", ["config"], appVersion="1.2.3")
    report.set_api_stats(requests=4, retries=3)
    report.finish(status=STATUS_FAILED)
    finalizeReport(report, durationMs=3, logFile=None, reportDir=str(tmp_path / "out"))

    path = writeReportJson(report, str(tmp_path / "out"))

    assert report.status == STATUS_FAILED
    assert path == str(tmp_path / "out" / "report_rate-limit_r.json")
    data = json.loads((tmp_path / "out" / "report_rate-limit_r.json").read_text(encoding="utf-8"))
    assert data["status"] == STATUS_FAILED
    assert data["meta"]["app_version"] == "1.2.3"
    assert data["summary"]["api_requests"] == 4
    assert data["summary"]["api_retries"] == 3
    assert data["context"]["config"] == {"sources": ["config"]}
    assert data["context"]["runtime"]["report_file"] == path
