import pytest

from sopsage_core.crypto import NativeAgeKeygen
from sopsage_core.tools import CommandResult


class FakeRunner:
    """Stands in for CommandRunner: records argv/env, replays queued results."""

    def __init__(self, results=None):
        self.calls = []
        self.results = list(results or [])

    def queue(self, exit_code=0, stdout="", stderr=""):
        self.results.append((exit_code, stdout, stderr))

    async def run(self, argv, *, env=None, interactive=False):
        self.calls.append({"argv": list(argv), "env": env, "interactive": interactive})
        exit_code, stdout, stderr = self.results.pop(0) if self.results else (0, "", "")
        return CommandResult(argv=list(argv), exit_code=exit_code, stdout=stdout, stderr=stderr)


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def keygen():
    return NativeAgeKeygen()


@pytest.fixture
def key_file(tmp_path):
    return tmp_path / "sops" / "age" / "keys.txt"
