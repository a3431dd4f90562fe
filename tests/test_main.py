import conformance.__main__ as cli
from conformance.errors import FixtureError, LedgerConnectionError
from conformance.runner import CaseReport, SuiteReport


def test_list(capsys):
    assert cli.main(["--list"]) == cli.EXIT_OK
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "trustline"
    assert out[-1].startswith("multisign")


def test_unknown_case():
    assert cli.main(["--case", "nope", "--no-probe"]) == cli.EXIT_SETUP


def test_unreachable_node(monkeypatch):
    async def down(url, *args, **kwargs):
        raise LedgerConnectionError("refused")

    monkeypatch.setattr(cli, "probe_node", down)
    assert cli.main(["--case", "payment"]) == cli.EXIT_SETUP


def test_exit_codes_follow_report(monkeypatch):
    reports = iter([
        SuiteReport(cases=[CaseReport("payment", True, 0.1)]),
        SuiteReport(cases=[CaseReport("payment", False, 0.1, AssertionError("x"))]),
        SuiteReport(cases=[], setup_error=FixtureError("fund", RuntimeError("x"))),
    ])
    seen = {}

    async def fake_run_suite(settings, cases):
        seen["ws_url"] = settings.ws_url
        seen["timeout"] = settings.case_timeout
        return next(reports)

    monkeypatch.setattr(cli, "run_suite", fake_run_suite)
    args = ["--no-probe", "--ws-url", "ws://node:6006", "--timeout", "7"]

    assert cli.main(args) == cli.EXIT_OK
    assert seen == {"ws_url": "ws://node:6006", "timeout": 7.0}
    assert cli.main(args) == cli.EXIT_FAILED
    assert cli.main(args) == cli.EXIT_SETUP
