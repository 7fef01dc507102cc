import os
import shutil
import subprocess

import pytest

from brewlot.errors import MirrorError
from brewlot.executor import BuildExecutor
from brewlot.git import Git
from brewlot.manifest import BuildUnit
from brewlot.mirror import SourceTreeResolver
from brewlot.scheduler import BuildStatus

from fakes import FakeDocker


pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

T1 = 1600000000
T2 = 1600086400


def _git(cwd, *args, date=None):
    env = dict(
        os.environ,
        GIT_AUTHOR_NAME="Test",
        GIT_AUTHOR_EMAIL="test@example.com",
        GIT_COMMITTER_NAME="Test",
        GIT_COMMITTER_EMAIL="test@example.com",
    )
    if date is not None:
        env["GIT_AUTHOR_DATE"] = f"{date} +0000"
        env["GIT_COMMITTER_DATE"] = f"{date} +0000"
    proc = subprocess.run(
        ["git", *args], cwd=cwd, env=env, check=True, capture_output=True, text=True
    )
    return proc.stdout.strip()


@pytest.fixture
def origin(tmp_path):
    origin = tmp_path / "origin"
    (origin / "ctx").mkdir(parents=True)
    _git(origin, "init", "-q")
    (origin / "ctx" / "Dockerfile").write_text("FROM scratch\n")
    (origin / "ctx" / "a.txt").write_text("a\n")
    (origin / "README").write_text("readme\n")
    _git(origin, "add", ".")
    _git(origin, "commit", "-q", "-m", "first", date=T1)
    (origin / "ctx" / "a.txt").write_text("a, again\n")
    _git(origin, "commit", "-q", "-am", "second", date=T2)
    _git(origin, "tag", "v2")
    return origin


def test_resolve_and_read(origin):
    git = Git()
    head = git.resolve_commit(origin, "HEAD")
    assert len(head) == 40
    assert git.resolve_commit(origin, "v2") == head
    assert git.resolve_commit(origin, "no-such-ref") is None
    assert git.resolve_commit(origin / "missing", "HEAD") is None
    assert git.read_file(origin, head, "ctx/Dockerfile") == b"FROM scratch\n"
    assert git.read_file(origin, head, "nope/Dockerfile") is None


def test_timestamps(origin):
    git = Git()
    head = git.resolve_commit(origin, "HEAD")
    assert git.commit_timestamp(origin, head) == T2
    assert git.commit_timestamp(origin, "HEAD~1") == T1
    assert git.file_timestamps(origin, head, "ctx") == {
        "ctx/Dockerfile": T1,
        "ctx/a.txt": T2,
    }
    assert git.file_timestamps(origin, head)["README"] == T1


def test_clone_and_fetch(origin, tmp_path):
    git = Git(fetch_attempts=1)
    resolver = SourceTreeResolver(tmp_path / "src", git)
    url = str(origin)
    path = resolver.ensure(url, "v2")
    assert (path / ".git").is_dir()
    assert _git(path, "config", "gc.auto") == "0"

    (origin / "new.txt").write_text("new\n")
    _git(origin, "add", "new.txt")
    _git(origin, "commit", "-q", "-m", "third", date=T2 + 60)
    _git(origin, "tag", "v3")

    assert git.resolve_commit(path, "v3") is None
    resolver.ensure(url, "v3")
    assert git.resolve_commit(path, "v3") is not None
    assert resolver.handle_for(url).fetches == 1


def _mtimes(root):
    found = {}
    for dirpath, dirnames, filenames in os.walk(root):
        found[os.path.relpath(dirpath, root)] = os.stat(dirpath).st_mtime
        for name in filenames:
            path = os.path.join(dirpath, name)
            found[os.path.relpath(path, root)] = os.stat(path).st_mtime
    return found


def test_materialize_is_reproducible(origin, tmp_path):
    git = Git(fetch_attempts=1)
    resolver = SourceTreeResolver(tmp_path / "src", git)
    mirror = resolver.ensure(str(origin), "v2")
    unit = BuildUnit("ctx:latest", str(origin), "v2", "ctx")
    docker = FakeDocker()
    executor = BuildExecutor(git, docker)

    assert executor.execute(unit, mirror).status == BuildStatus.BUILT
    first = _mtimes(mirror / "ctx")
    assert first["a.txt"] == T2
    assert first["Dockerfile"] == T1
    assert first["."] == T2

    # Leave a mess behind, like a previous build might
    (mirror / "ctx" / "a.txt").write_text("local change\n")
    (mirror / "ctx" / "untracked").write_text("junk\n")
    os.utime(mirror / "ctx" / "Dockerfile")

    assert executor.execute(unit, mirror).status == BuildStatus.BUILT
    assert _mtimes(mirror / "ctx") == first
    assert (mirror / "ctx" / "a.txt").read_text() == "a, again\n"
    assert docker.contexts == [mirror / "ctx", mirror / "ctx"]


def test_directory_inside_another_checkout_is_left_alone(origin):
    git = Git(fetch_attempts=1)
    resolver = SourceTreeResolver(origin / ".brewlot" / "src", git)
    url = "https://example.com/repo.git"
    resolver.handle_for(url).path.mkdir(parents=True)

    with pytest.raises(MirrorError):
        resolver.ensure(url, "v2")

    proc = subprocess.run(["git", "config", "--get", "gc.auto"], cwd=origin, capture_output=True)
    assert proc.returncode == 1
