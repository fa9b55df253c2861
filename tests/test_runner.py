import json
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

from repofan.runner import main


def _make_working_copy(path: Path, url: str) -> Path:
    (path / ".git").mkdir(parents=True)
    (path / ".git" / "config").write_text(
        f'[core]\n\tbare = false\n[remote "origin"]\n\turl = {url}\n[branch "main"]\n\tremote = origin\n'
    )
    return path


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """A config file running python instead of git, and two repositories."""
    monkeypatch.setenv("NO_COLOR", "1")
    alpha = _make_working_copy(tmp_path / "code" / "alpha", "https://example.com/alpha.git")
    beta = _make_working_copy(tmp_path / "code" / "beta", "https://example.com/beta.git")
    (beta / "fail").write_text("")

    repos_file = tmp_path / "repos.json"
    repos_file.write_text(
        json.dumps(
            [
                {"name": "alpha", "local": str(alpha)},
                {"name": "beta", "local": str(beta)},
            ]
        )
    )

    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        f"repos_file: {repos_file}\n"
        f"program: {sys.executable}\n"
        "commands:\n"
        "  hello:\n"
        "    - -c\n"
        "    - |\n"
        "      import pathlib, sys\n"
        "      print('hello from ' + pathlib.Path.cwd().name)\n"
        "      if pathlib.Path('fail').exists():\n"
        "          print('it broke', file=sys.stderr)\n"
        "          sys.exit(1)\n"
    )
    return tmp_path, config_file


def test_no_arguments_prints_banner(capsys):
    assert main([]) == 0
    assert "Usage: repofan" in capsys.readouterr().out


def test_help_for_command(capsys):
    assert main(["help", "do"]) == 0
    assert "--dashboard" in capsys.readouterr().out


def test_help_for_unknown_command(capsys):
    assert main(["help", "nope"]) == 1


def test_usage_error_exits_with_one(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["do"])
    assert excinfo.value.code == 1


def test_list(workspace, capsys):
    _, config_file = workspace

    assert main(["--config", str(config_file), "list"]) == 0

    out = capsys.readouterr().out
    assert "alpha [main]" in out
    assert "https://example.com/beta.git" in out


def test_list_full_shows_config(workspace, capsys):
    _, config_file = workspace

    assert main(["--config", str(config_file), "list", "full"]) == 0

    out = capsys.readouterr().out
    assert "remote.origin.url = https://example.com/alpha.git" in out
    assert "core.bare = false" in out


def test_do_reports_every_repository(workspace, capsys):
    _, config_file = workspace

    assert main(["--config", str(config_file), "do", "hello"]) == 0

    captured = capsys.readouterr()
    assert "hello from alpha" in captured.out
    assert "hello from beta" in captured.out
    assert "it broke" in captured.out
    assert "Successfully executed command in alpha" in captured.out
    assert "Error executing command in beta" in captured.out
    assert "Failed repositories: beta" in captured.err


def test_do_single_repository(workspace, capsys):
    _, config_file = workspace

    assert main(["--config", str(config_file), "do", "hello", "alpha"]) == 0

    out = capsys.readouterr().out
    assert "hello from alpha" in out
    assert "beta" not in out


def test_do_unknown_repository_fails(workspace, capsys):
    _, config_file = workspace

    assert main(["--config", str(config_file), "do", "hello", "gamma"]) == 1
    assert "Repository not found: gamma" in capsys.readouterr().err


def test_do_empty_command_fails(workspace, capsys):
    _, config_file = workspace

    assert main(["--config", str(config_file), "do", ""]) == 1
    assert "Missing command" in capsys.readouterr().err


def test_show_prints_resolved_command(workspace, capsys):
    _, config_file = workspace

    assert main(["--config", str(config_file), "show", "status", "beta"]) == 0

    out = capsys.readouterr().out
    assert out.startswith("beta: (cd ")
    assert "status --short --branch" in out
    assert "alpha" not in out


def test_missing_repos_file_fails(tmp_path, capsys):
    config_file = tmp_path / "config.yaml"
    config_file.write_text(f"repos_file: {tmp_path / 'absent.json'}\n")

    assert main(["--config", str(config_file), "list"]) == 1
    assert "Error loading repositories" in capsys.readouterr().err


def test_missing_config_file_fails(tmp_path, capsys):
    assert main(["--config", str(tmp_path / "absent.yaml"), "list"]) == 1


def test_unloadable_repository_warns(workspace, capsys):
    tmp_path, config_file = workspace
    repos_file = tmp_path / "repos.json"
    entries = json.loads(repos_file.read_text())
    entries.append({"name": "ghost", "local": str(tmp_path / "ghost")})
    repos_file.write_text(json.dumps(entries))

    assert main(["--config", str(config_file), "list"]) == 0

    captured = capsys.readouterr()
    assert "ghost" in captured.out
    assert "[Warning]: ghost" in captured.err
    assert "Have you cloned this repository" in captured.err


def test_genrepos_prints_json(workspace, capsys):
    tmp_path, _ = workspace

    assert main(["genrepos", str(tmp_path / "code")]) == 0

    data = json.loads(capsys.readouterr().out)
    assert sorted(entry["name"] for entry in data) == ["alpha", "beta"]
    assert all("config" not in entry for entry in data)


def test_genrepos_with_config(workspace, capsys):
    tmp_path, _ = workspace

    assert main(["genrepos", str(tmp_path / "code"), "--with-config"]) == 0

    data = json.loads(capsys.readouterr().out)
    assert data[0]["config"]["core"] == {"bare": "false"}


def test_genrepos_missing_root_fails(tmp_path, capsys):
    assert main(["genrepos", str(tmp_path / "absent")]) == 1


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_clone_missing_repositories(tmp_path, capsys, monkeypatch):
    monkeypatch.setenv("NO_COLOR", "1")
    origin = tmp_path / "origin.git"
    subprocess.run(["git", "init", "--bare", str(origin)], check=True, capture_output=True)
    existing = _make_working_copy(tmp_path / "existing", "https://example.com/e.git")

    repos_file = tmp_path / "repos.json"
    repos_file.write_text(
        json.dumps(
            [
                {"name": "fresh", "local": str(tmp_path / "clones" / "fresh"), "remote": str(origin)},
                {"name": "existing", "local": str(existing)},
                {"name": "orphan", "local": str(tmp_path / "orphan")},
            ]
        )
    )
    config_file = tmp_path / "config.yaml"
    config_file.write_text(f"repos_file: {repos_file}\n")

    assert main(["--config", str(config_file), "clone"]) == 0

    captured = capsys.readouterr()
    assert "Cloned fresh" in captured.out
    assert "Skipping existing" in captured.out
    assert "Error cloning orphan: no remote URL configured" in captured.err
    assert (tmp_path / "clones" / "fresh" / ".git").is_dir()


def test_broken_config_in_existing_copy_warns_without_clone_hint(workspace, capsys):
    tmp_path, config_file = workspace
    broken = tmp_path / "code" / "broken"
    (broken / ".git").mkdir(parents=True)
    (broken / ".git" / "config").write_text("bare = false\n[core]\n")
    repos_file = tmp_path / "repos.json"
    entries = json.loads(repos_file.read_text())
    entries.append({"name": "broken", "local": str(broken)})
    repos_file.write_text(json.dumps(entries))

    assert main(["--config", str(config_file), "list"]) == 0

    err = capsys.readouterr().err
    assert "[Warning]: broken" in err
    assert "Have you cloned" not in err


def test_do_with_unusable_log_dir_fails_cleanly(workspace, capsys):
    tmp_path, config_file = workspace
    blocker = tmp_path / "blocker"
    blocker.write_text("")
    with open(config_file, "a") as f:
        f.write(f"log_dir: {blocker / 'logs'}\n")

    assert main(["--config", str(config_file), "do", "hello"]) == 1

    captured = capsys.readouterr()
    assert "Error:" in captured.err
    assert "hello from" not in captured.out
