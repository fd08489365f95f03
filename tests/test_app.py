from unittest.mock import patch

from pharm_study.app import (
    cmd_analyze, cmd_gaps, cmd_kb, cmd_new, cmd_report, cmd_status, console, main, select_module,
)
from pharm_study.orchestrator import run_analysis
from pharm_study.store import create_module, list_modules, load_module, set_status

LIVER_DECK = "Cirrhosis and the portal circulation\n---\nHepatic clearance and the Child-Pugh classification\n"


def test_select_module_without_modules(ready_db):
    assert select_module(ready_db) is None


def test_cmd_new_creates_module(ready_db):
    with patch("pharm_study.app.Prompt.ask", side_effect=["Cardio Block", "", "cardiovascular", "Weeks 1-3"]):
        cmd_new(ready_db)
    modules = list_modules(ready_db)
    assert len(modules) == 1
    assert modules[0].name == "Cardio Block"
    assert modules[0].organ_system == "cardiovascular"
    assert modules[0].description == "Weeks 1-3"


def test_cmd_new_suggests_organ_system_from_sample(ready_db, tmp_path):
    deck = tmp_path / "liver.txt"
    deck.write_text(LIVER_DECK)
    with patch("pharm_study.app.Prompt.ask", side_effect=["Liver Block", str(deck), "hepatic", ""]) as ask:
        cmd_new(ready_db)
    assert ask.call_args_list[2].kwargs["default"] == "hepatic"
    assert list_modules(ready_db)[0].organ_system == "hepatic"


def test_cmd_analyze(ready_db, tmp_path):
    deck = tmp_path / "liver.txt"
    deck.write_text(LIVER_DECK)
    module = create_module(ready_db, "Liver Block", "hepatic")
    with patch("pharm_study.app.IntPrompt.ask", side_effect=[1, 15]), \
            patch("pharm_study.app.Prompt.ask", return_value=str(deck)):
        cmd_analyze(ready_db)
    stored = load_module(ready_db, module.id)
    assert stored.status == "ready"
    assert stored.content_stats.total_slides == 2
    assert stored.study_progress.study_time_minutes == 15
    assert "patho-cirrhosis" in stored.study_progress.completed_topics


def test_cmd_analyze_reports_failure(ready_db, tmp_path):
    module = create_module(ready_db, "Liver Block", "hepatic")
    with patch("pharm_study.app.IntPrompt.ask", side_effect=[1, 0]), \
            patch("pharm_study.app.Prompt.ask", return_value=str(tmp_path / "missing.txt")):
        with console.capture() as capture:
            cmd_analyze(ready_db)
    assert "Analysis failed" in capture.get()
    assert load_module(ready_db, module.id).status == "created"


def test_cmd_gaps_before_analysis(ready_db):
    create_module(ready_db, "Liver Block", "hepatic")
    with patch("pharm_study.app.IntPrompt.ask", return_value=1):
        with console.capture() as capture:
            cmd_gaps(ready_db)
    assert "not been analyzed" in capture.get()


def test_cmd_kb(ready_db):
    with patch("pharm_study.app.Prompt.ask", return_value="hepatic"):
        with console.capture() as capture:
            cmd_kb(ready_db)
    output = capture.get()
    assert "Portal circulation" in output
    assert "Cirrhosis" in output


def test_cmd_report(ready_db, tmp_path):
    module = create_module(ready_db, "Liver Block", "hepatic")
    run_analysis(ready_db, module, [["Cirrhosis and the portal circulation"]])
    target = tmp_path / "liver-report.md"
    with patch("pharm_study.app.IntPrompt.ask", return_value=1), \
            patch("pharm_study.app.Prompt.ask", return_value=str(target)):
        cmd_report(ready_db)
    assert "Knowledge Gap Analysis Report" in target.read_text()


def test_cmd_status(ready_db):
    module = create_module(ready_db, "Liver Block", "hepatic")
    set_status(ready_db, module.id, "ready")
    with patch("pharm_study.app.IntPrompt.ask", return_value=1):
        cmd_status(ready_db, "studying")
    assert load_module(ready_db, module.id).status == "studying"


def test_main_quits(tmp_db):
    with patch("pharm_study.app.DEFAULT_DB_PATH", tmp_db), \
            patch("pharm_study.app.Prompt.ask", side_effect=["bogus", "quit"]):
        with console.capture() as capture:
            main()
    output = capture.get()
    assert "Unknown command" in output
    assert "Good luck" in output


def test_main_reports_errors_and_continues(tmp_db):
    with patch("pharm_study.app.DEFAULT_DB_PATH", tmp_db), \
            patch("pharm_study.app.cmd_modules", side_effect=RuntimeError("boom")), \
            patch("pharm_study.app.Prompt.ask", side_effect=["modules", "quit"]):
        with console.capture() as capture:
            main()
    assert "Error: boom" in capture.get()
