import pytest

from brewlot.dockerfile import BaseImageInspector
from brewlot.dockerfile import base_images
from brewlot.dockerfile import normalize_reference
from brewlot.errors import MissingDockerfileError
from brewlot.errors import RefResolutionError
from brewlot.manifest import BuildUnit

from fakes import FakeGit


def test_single_from():
    assert base_images("FROM debian:bookworm\nRUN true\n") == ("debian:bookworm",)


def test_from_is_case_insensitive():
    assert base_images("from scratch\nADD rootfs.tar.xz /\n") == ("scratch",)


def test_no_from():
    assert base_images("# just a comment\nRUN true\n") == ()


_multi_stage = """
FROM --platform=$BUILDPLATFORM golang:1.22 AS build
RUN go build ./...

FROM build AS test
RUN go test ./...

FROM alpine
COPY --from=build /out /usr/local/bin
"""


def test_multi_stage():
    # "build" is a stage in this Dockerfile, not an image
    assert base_images(_multi_stage) == ("golang:1.22", "alpine")


def test_normalize_reference():
    assert normalize_reference("debian", "latest") == "debian:latest"
    assert normalize_reference("debian:bookworm", "latest") == "debian:bookworm"
    assert normalize_reference("localhost:5000/debian", "stable") == "localhost:5000/debian:stable"
    assert normalize_reference("debian@sha256:abcd", "latest") == "debian@sha256:abcd"


URL = "https://example.com/repo.git"


def _git_with_mirror(tmp_path, files):
    git = FakeGit()
    git.add_commit(URL, "deadbeef", files=files)
    git.seed_mirror(tmp_path, URL)
    return git


def test_inspector(tmp_path):
    git = _git_with_mirror(tmp_path, {"sub/Dockerfile": b"FROM b\n"})
    inspect = BaseImageInspector(git, default_variant="latest")
    unit = BuildUnit("a:latest", URL, "deadbeef", "sub")
    assert inspect(unit, tmp_path) == ("b:latest",)


def test_inspector_default_variant(tmp_path):
    git = _git_with_mirror(tmp_path, {"Dockerfile": b"FROM b\n"})
    inspect = BaseImageInspector(git, default_variant="stable")
    assert inspect(BuildUnit("a:stable", URL, "deadbeef"), tmp_path) == ("b:stable",)


def test_inspector_missing_dockerfile(tmp_path):
    git = _git_with_mirror(tmp_path, {})
    inspect = BaseImageInspector(git)
    with pytest.raises(MissingDockerfileError):
        inspect(BuildUnit("a:latest", URL, "deadbeef", "sub"), tmp_path)


def test_inspector_bad_ref(tmp_path):
    git = _git_with_mirror(tmp_path, {"Dockerfile": b"FROM b\n"})
    inspect = BaseImageInspector(git)
    with pytest.raises(RefResolutionError):
        inspect(BuildUnit("a:latest", URL, "nope"), tmp_path)
