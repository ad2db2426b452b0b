import pytest
import branchdiffs
import os
import pathlib
import shlex

from typing import Dict, Generator, Optional, Tuple


class FakeCommitLog(branchdiffs.CommitLogSource):
    """Serves canned git output, keyed the same way the queries are made."""

    def __init__(self, branches: bytes = b'', bases: Optional[Dict[Tuple[str, str], bytes]] = None,
                 logs: Optional[Dict[Tuple[str, str], bytes]] = None):
        self.branches = branches
        self.bases = bases or dict()
        self.logs = logs or dict()

    def list_branches(self) -> bytes:
        return self.branches

    def merge_base(self, a: str, b: str) -> bytes:
        if (a, b) not in self.bases:
            raise branchdiffs.RepositoryError('Not a valid object name %s' % a)
        return self.bases[(a, b)]

    def log_bodies(self, start: str, end: str) -> bytes:
        return self.logs[(start, end)]


@pytest.fixture(scope="function", autouse=True)
def settestdefaults(monkeypatch: pytest.MonkeyPatch, tmp_path: pathlib.Path) -> None:
    branchdiffs.MAIN_CONFIG = dict(branchdiffs.DEFAULT_CONFIG)
    # Keep git from finding any repository above our temporary dirs
    monkeypatch.setenv('GIT_CEILING_DIRECTORIES', str(tmp_path))
    monkeypatch.setenv('GIT_CONFIG_NOSYSTEM', '1')
    monkeypatch.setenv('HOME', str(tmp_path))


@pytest.fixture(scope="function")
def sampledir(request: pytest.FixtureRequest) -> str:
    return os.path.join(request.path.parent, 'samples')


@pytest.fixture(scope="function")
def fake_arc(tmp_path: pathlib.Path, sampledir: str):
    """Returns a callable that writes a stand-in for arc printing the named
    sample, and points the config at it."""
    def _make(sample: str, ecode: int = 0) -> str:
        script = os.path.join(tmp_path, 'fake-arc')
        with open(script, 'w') as fh:
            fh.write('#!/bin/sh\n')
            fh.write('cat "%s"\n' % os.path.join(sampledir, f'{sample}.txt'))
            fh.write('exit %s\n' % ecode)
        command = 'sh %s' % shlex.quote(script)
        branchdiffs.MAIN_CONFIG['arc-command'] = command
        return command

    return _make


def _git(dest: str, args: list, stdin: Optional[bytes] = None) -> str:
    ecode, out, err = branchdiffs.git_run_command(None, args, stdin=stdin, rundir=dest)
    assert ecode == 0, err
    return out


def _commit(dest: str, message: str) -> None:
    _git(dest, ['commit', '-q', '--allow-empty', '-F', '-'], stdin=message.encode())


@pytest.fixture(scope="function")
def gitdir(tmp_path: pathlib.Path) -> Generator[str, None, None]:
    """A repository with the following branches:
        master   initial commit, then D5 after the others branched off
        feature  D10, D20
        plain    one commit without a revision
        stacked  feature + D30, with feature as its upstream
    """
    dest = os.path.join(tmp_path, 'repo')
    os.mkdir(dest)
    _git(dest, ['init', '-q'])
    _git(dest, ['symbolic-ref', 'HEAD', 'refs/heads/master'])
    _git(dest, ['config', 'user.name', 'Test Override'])
    _git(dest, ['config', 'user.email', 'test-override@example.com'])
    _git(dest, ['config', 'commit.gpgsign', 'false'])
    _commit(dest, 'Initial commit\n')

    _git(dest, ['checkout', '-q', '-b', 'feature'])
    _commit(dest, 'Add foo\n\nDifferential Revision: https://phab.example.com/D10\n')
    _commit(dest, 'Fix foo\n\nSummary: it was broken\n\nDifferential Revision: https://phab.example.com/D20\n')

    _git(dest, ['checkout', '-q', '-b', 'stacked'])
    _commit(dest, 'Build on foo\n\nDifferential Revision: https://phab.example.com/D30\n')
    _git(dest, ['branch', '-q', '--set-upstream-to=feature'])

    _git(dest, ['checkout', '-q', 'master'])
    _git(dest, ['checkout', '-q', '-b', 'plain'])
    _commit(dest, 'Unreviewed change\n')

    _git(dest, ['checkout', '-q', 'master'])
    _commit(dest, 'Landed elsewhere\n\nDifferential Revision: https://phab.example.com/D5\n')

    olddir = os.getcwd()
    os.chdir(dest)
    yield dest
    os.chdir(olddir)
