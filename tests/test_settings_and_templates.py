import json
import logging

from pages_deployer.logs import LOGGER_NAME, setup_logging, tail_log
from pages_deployer.settings import Settings
from pages_deployer.templates import render_license, render_readme, supporting_files


def test_settings_defaults(monkeypatch):
    for name in ("SETTLE_DELAY_SECONDS", "LLM_MODEL", "GITHUB_PAGES_BASE"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings(_env_file=None)

    assert settings.SETTLE_DELAY_SECONDS == 10
    assert settings.LLM_MODEL == "openai/gpt-4o-mini"
    assert settings.pages_base_for("Octo") == "https://octo.github.io"


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("STUDENT_SECRET", "from-env")
    monkeypatch.setenv("SETTLE_DELAY_SECONDS", "2.5")

    settings = Settings(_env_file=None)

    assert settings.STUDENT_SECRET == "from-env"
    assert settings.SETTLE_DELAY_SECONDS == 2.5


def test_setup_logging_writes_file(settings):
    logger = setup_logging(settings)
    logging.getLogger(f"{LOGGER_NAME}.pipeline").info("[PIPELINE] hello from test")
    for h in logger.handlers:
        h.flush()

    assert "[INFO] [PIPELINE] hello from test" in tail_log(settings.LOG_FILE_PATH, 5)
    assert logger.propagate is False
    assert len(logger.handlers) == 2

    setup_logging(settings)
    assert len(logger.handlers) == 2

    for h in logger.handlers:
        h.close()
    logger.handlers = []


def test_tail_log_spans_blocks(tmp_path):
    path = tmp_path / "big.log"
    path.write_text("".join(f"entry {i:05d} " + "." * 80 + "\n" for i in range(200)), encoding="utf-8")

    lines = tail_log(str(path), 30).splitlines()

    assert len(lines) == 30
    assert lines[0].startswith("entry 00170")
    assert lines[-1].startswith("entry 00199")


def test_license_names_holder_and_year():
    text = render_license("student@example.com", year=2025)
    assert text.startswith("MIT License\n\nCopyright (c) 2025 student@example.com")


def test_readme_lists_checks_and_attachments():
    readme = render_readme(
        "My Task", "my-task", "Show sales", ["a", "b"],
        "https://github.com/octo/my-task.git", "https://octo.github.io/my-task/", 1, ["data.csv"],
    )
    assert readme.startswith("# My Task\n")
    assert "## Requirements Checklist\n- [ ] a\n- [ ] b\n" in readme
    assert "git clone https://github.com/octo/my-task.git" in readme
    assert "- `data.csv`" in readme


def test_supporting_files_set():
    files = supporting_files(
        task="My Task", slug="my-task", brief="Show sales", checks=[], email="s@example.com",
        clone_url="https://github.com/octo/my-task.git", pages_url="https://octo.github.io/my-task/", round_index=2,
    )
    assert set(files) == {"LICENSE", "README.md", ".gitignore", "package.json"}
    assert "node_modules/" in files[".gitignore"]
    manifest = json.loads(files["package.json"])
    assert manifest["author"] == "s@example.com"
    assert manifest["main"] == "index.html"
    assert "_No checks supplied._" in files["README.md"]
