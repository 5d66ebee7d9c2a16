import json

import pytest

from conversation_analysis.app import cli
from conversation_analysis.core.analyzer.port import AnalyzerPort
from conversation_analysis.core.errors import AnalyzerUnavailableError
from conversation_analysis.core.history import HistoryStore
from conversation_analysis.infrastructure.storage.file import FileKeyValueStorage
from conversation_analysis.service import AnalysisService, Services


class StubAnalyzer(AnalyzerPort):
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error

    def analyze(self, conversation_text, context_text, detail_level):
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def history_dir(tmp_path, monkeypatch):
    path = tmp_path / "history"
    monkeypatch.setenv("HISTORY_STORAGE_URL", str(path))
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    monkeypatch.delenv("HISTORY_CAPACITY", raising=False)
    return path


@pytest.fixture
def seeded(history_dir, make_record):
    store = HistoryStore(FileKeyValueStorage(history_dir))
    store.add(make_record("older"))
    store.add(make_record("newer"))
    return store


@pytest.fixture
def stub_service(monkeypatch, history_dir, assembler):
    def _install(analyzer):
        def build(settings):
            services = Services(
                analyzer=analyzer,
                history=HistoryStore(FileKeyValueStorage(history_dir)),
            )
            return AnalysisService(services, assembler=assembler)

        monkeypatch.setattr(cli, "build_service", build)

    return _install


def test_history_list(seeded, capsys):
    assert cli.main(["history", "list"]) == 0

    lines = capsys.readouterr().out.strip().splitlines()
    assert lines[0].startswith("newer")
    assert lines[1].startswith("older")


def test_history_list_empty(history_dir, capsys):
    assert cli.main(["history", "list"]) == 0
    assert "History is empty" in capsys.readouterr().out


def test_history_show_highlights_evidence(seeded, capsys):
    assert cli.main(["history", "show", "newer"]) == 0

    out = capsys.readouterr().out
    assert "[[Using that against me]]^1" in out
    assert "[[Your feelings are a weapon]]^2" in out
    assert "(quote not found in text)" in out
    assert out.index("[CRITICAL]") < out.index("[HIGH]")


def test_history_show_json(seeded, capsys):
    assert cli.main(["history", "show", "older", "--json"]) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["id"] == "older"


def test_history_show_unknown(seeded, capsys):
    assert cli.main(["history", "show", "nope"]) == 1
    assert "No analysis with id nope" in capsys.readouterr().err


def test_history_remove_and_clear(seeded, history_dir, capsys):
    assert cli.main(["history", "remove", "older"]) == 0
    assert [r.id for r in HistoryStore(FileKeyValueStorage(history_dir)).list()] == ["newer"]

    assert cli.main(["history", "remove", "older"]) == 0
    assert "No analysis with id older" in capsys.readouterr().out

    assert cli.main(["history", "clear"]) == 0
    assert HistoryStore(FileKeyValueStorage(history_dir)).list() == ()


def test_analyze_prints_and_stores(stub_service, raw_response, conversation, tmp_path, history_dir, capsys):
    stub_service(StubAnalyzer(raw_response))
    source = tmp_path / "chat.txt"
    source.write_text(conversation, encoding="utf-8")

    assert cli.main(["analyze", str(source), "--context", "couple", "--json"]) == 0

    data = json.loads(capsys.readouterr().out)
    assert data["source_text"] == conversation
    stored = HistoryStore(FileKeyValueStorage(history_dir)).list()
    assert [r.id for r in stored] == [data["id"]]


def test_analyze_reports_analyzer_failure(stub_service, tmp_path, capsys):
    stub_service(StubAnalyzer(error=AnalyzerUnavailableError("model not running")))
    source = tmp_path / "chat.txt"
    source.write_text("A: hello", encoding="utf-8")

    assert cli.main(["analyze", str(source)]) == 1
    assert "model not running" in capsys.readouterr().err


def test_analyze_missing_file(stub_service, tmp_path, capsys):
    stub_service(StubAnalyzer({}))

    assert cli.main(["analyze", str(tmp_path / "absent.txt")]) == 1
    assert "File not found" in capsys.readouterr().err


def test_render_annotated_text(record):
    rendered = cli.render_annotated_text(record)

    assert rendered.replace("[[", "").replace("]]^1", "").replace("]]^2", "") == record.source_text


def test_history_list_with_unreachable_database(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("HISTORY_STORAGE_URL", f"sqlite:///{tmp_path / 'missing' / 'dir' / 'x.db'}")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")

    assert cli.main(["history", "list"]) == 0
    assert "History is empty" in capsys.readouterr().out


def test_invalid_log_level_is_a_settings_error(history_dir, monkeypatch, capsys):
    monkeypatch.setenv("LOG_LEVEL", "verbose")

    assert cli.main(["history", "list"]) == 2
    assert "LOG_LEVEL" in capsys.readouterr().err
