from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from files2xml.config import DEFAULT_IGNORE_PATTERNS
from files2xml.exceptions import GitCommandError, GitDirNotFoundError, NotAGitRepositoryError
from files2xml.file_manipulation import git_ls_files, list_tracked_files, walk_directories

if TYPE_CHECKING:
    from pytest_mock import MockerFixture

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")


def fake_repo(root: Path) -> Path:
    (root / ".git").mkdir(parents=True)
    return root


def completed(stdout: str = "", returncode: int = 0, stderr: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args=["git", "ls-files", "-z"], returncode=returncode, stdout=stdout, stderr=stderr)


@pytest.mark.unit
def test_git_ls_files_missing_directory(tmp_path: Path) -> None:
    with pytest.raises(GitDirNotFoundError) as exc_info:
        git_ls_files(tmp_path / "nope", [])

    assert exc_info.value.folder == tmp_path / "nope"


@pytest.mark.unit
def test_git_ls_files_directory_without_git_metadata(tmp_path: Path) -> None:
    with pytest.raises(NotAGitRepositoryError) as exc_info:
        git_ls_files(tmp_path, [])

    assert exc_info.value.folder == tmp_path


@pytest.mark.unit
def test_git_ls_files_runs_from_the_repository_root(tmp_path: Path, mocker: MockerFixture) -> None:
    repo = fake_repo(tmp_path / "repo")
    before = Path.cwd()
    seen_cwd: list[Path] = []

    def run(*_args: object, **_kwargs: object) -> subprocess.CompletedProcess[str]:
        seen_cwd.append(Path.cwd())
        return completed("a.txt\0sub/b.log\0sub/c.txt\0")

    mocker.patch("files2xml.file_manipulation.subprocess.run", side_effect=run)

    files = git_ls_files(repo, ["*.log"])

    assert seen_cwd == [repo.resolve()]
    assert Path.cwd() == before
    assert files == [repo / "a.txt", repo / "sub" / "c.txt"]


@pytest.mark.unit
def test_git_ls_files_restores_cwd_when_git_fails(tmp_path: Path, mocker: MockerFixture) -> None:
    repo = fake_repo(tmp_path / "repo")
    before = Path.cwd()
    mocker.patch(
        "files2xml.file_manipulation.subprocess.run",
        return_value=completed(returncode=128, stderr="fatal: not a git repository"),
    )

    with pytest.raises(GitCommandError) as exc_info:
        git_ls_files(repo, [])

    assert exc_info.value.returncode == 128
    assert exc_info.value.command == "git ls-files -z"
    assert Path.cwd() == before


@pytest.mark.unit
def test_git_ls_files_restores_cwd_when_git_cannot_start(tmp_path: Path, mocker: MockerFixture) -> None:
    repo = fake_repo(tmp_path / "repo")
    before = Path.cwd()
    mocker.patch("files2xml.file_manipulation.subprocess.run", side_effect=FileNotFoundError("git"))

    with pytest.raises(FileNotFoundError):
        git_ls_files(repo, [])

    assert Path.cwd() == before


@pytest.mark.unit
def test_list_tracked_files_unions_repositories_and_skips_bad_ones(tmp_path: Path, mocker: MockerFixture) -> None:
    first = fake_repo(tmp_path / "first")
    second = fake_repo(tmp_path / "second")
    (tmp_path / "plain").mkdir()
    mocker.patch(
        "files2xml.file_manipulation.subprocess.run",
        side_effect=[completed("one.txt\0"), completed("two.txt\0")],
    )

    files = list_tracked_files([first, tmp_path / "plain", tmp_path / "missing", second], [])

    assert files == [first / "one.txt", second / "two.txt"]


@pytest.mark.unit
@requires_git
def test_git_ls_files_lists_tracked_files_only(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    (repo / "src").mkdir(parents=True)
    (repo / "src" / "app.py").write_text("print('hi')\n", encoding="utf-8")
    (repo / "notes.txt").write_text("notes\n", encoding="utf-8")
    (repo / "untracked.txt").write_text("nope\n", encoding="utf-8")
    subprocess.run(["git", "init", "-q"], cwd=repo, check=True)
    subprocess.run(["git", "add", "src/app.py", "notes.txt"], cwd=repo, check=True)

    files = git_ls_files(repo, [])

    assert sorted(files) == [repo / "notes.txt", repo / "src" / "app.py"]


@pytest.mark.unit
@requires_git
def test_ignore_patterns_apply_identically_to_git_and_walk(tmp_path: Path) -> None:
    repo = tmp_path / "repo"
    for rel in ("keep.txt", "debug.log", "pkg/__pycache__/m.pyc", "pkg/mod.py", "backup.bak"):
        path = repo / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(rel, encoding="utf-8")
    subprocess.run(["git", "init", "-q"], cwd=repo, check=True)
    subprocess.run(["git", "add", "--force", "."], cwd=repo, check=True)

    tracked = git_ls_files(repo, DEFAULT_IGNORE_PATTERNS)
    walked = [p for p in walk_directories([repo], [*DEFAULT_IGNORE_PATTERNS, ".git/*"]) if ".git" not in p.parts]

    assert sorted(tracked) == sorted(walked) == [repo / "keep.txt", repo / "pkg" / "mod.py"]
