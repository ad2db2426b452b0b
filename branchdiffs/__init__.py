# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2020 by the Linux Foundation
import subprocess
import logging
import re
import os
import copy
import urllib.parse

from pathlib import Path
from typing import Optional, Tuple, List, Union, Dict

__VERSION__ = '0.1.0'

logger = logging.getLogger('branchdiffs')

# Matches the path of a Differential revision URL, e.g. /D1234
DIFF_PATH_RE = re.compile(r'/(D[0-9]+)')
DIFF_TRAILER = 'Differential Revision:'

DEFAULT_CONFIG = {
    # Branch we compare every local branch against
    'target-branch': 'master',
    # Command used to list open Differential revisions
    'arc-command': 'arc',
    # auto: colour when writing to a terminal
    # always: always emit colour escapes
    # never: plain text
    'color': 'auto',
}

# This is where we store actual config
MAIN_CONFIG = None


class RepositoryError(RuntimeError):
    """Raised when a git query fails or returns something we can't use."""
    pass


class ReviewToolError(RuntimeError):
    """Raised when the review tool listing command fails."""
    pass


class TableParseError(ValueError):
    def __init__(self, line: str):
        self.line = line
        super().__init__('Could not parse line: %r' % line)


class BranchInfo:
    branch: str
    upstream: Optional[str] = None

    def __init__(self, branch: str, upstream: Optional[str] = None):
        self.branch = branch
        self.upstream = upstream

    def __eq__(self, other):
        return self.branch == other.branch and self.upstream == other.upstream

    def __repr__(self):
        out = list()
        out.append('  branch: %s' % self.branch)
        out.append('  upstream: %s' % self.upstream)

        return '\n'.join(out)


class CommitLogSource:
    """Read-only access to the version-control history. Each query returns
    raw output bytes exactly as the backend emitted them."""

    def list_branches(self) -> bytes:
        raise NotImplementedError

    def merge_base(self, a: str, b: str) -> bytes:
        raise NotImplementedError

    def log_bodies(self, start: str, end: str) -> bytes:
        raise NotImplementedError


class GitCommitLog(CommitLogSource):
    gitdir: Optional[str]

    def __init__(self, gitdir: Optional[str] = None):
        self.gitdir = gitdir

    def _query(self, args: List[str]) -> bytes:
        ecode, out, err = git_run_command(self.gitdir, args, decode=False)
        if ecode != 0:
            raise RepositoryError('git %s failed: %s' % (args[0], err.decode(errors='replace').strip()))
        return out

    def list_branches(self) -> bytes:
        return self._query(['for-each-ref', '--format=%(refname:short)%00%(upstream:short)', 'refs/heads'])

    def merge_base(self, a: str, b: str) -> bytes:
        return self._query(['merge-base', a, b])

    def log_bodies(self, start: str, end: str) -> bytes:
        return self._query(['log', '--format=%B', f'{start}..{end}'])


def _run_command(cmdargs: List[str], stdin: Optional[bytes] = None,
                 rundir: Optional[str] = None) -> Tuple[int, bytes, bytes]:
    if rundir:
        logger.debug('Running %s in %s', ' '.join(cmdargs), rundir)
    else:
        logger.debug('Running %s', ' '.join(cmdargs))
    sp = subprocess.Popen(cmdargs, stdout=subprocess.PIPE, stdin=subprocess.PIPE, stderr=subprocess.PIPE, cwd=rundir)
    (output, error) = sp.communicate(input=stdin)

    return sp.returncode, output, error


def git_run_command(gitdir: Optional[Union[str, Path]], args: List[str], stdin: Optional[bytes] = None,
                    decode: bool = True,
                    rundir: Optional[str] = None) -> Tuple[int, Union[str, bytes], Union[str, bytes]]:
    cmdargs = ['git', '--no-pager']
    if gitdir:
        if os.path.exists(os.path.join(gitdir, '.git')):
            gitdir = os.path.join(gitdir, '.git')
        cmdargs += ['--git-dir', str(gitdir)]

    # counteract some potential local settings
    if args[0] == 'log':
        args = [args[0], '--no-abbrev-commit', '--no-color'] + args[1:]

    cmdargs += args

    ecode, out, err = _run_command(cmdargs, stdin=stdin, rundir=rundir)

    if decode:
        out = out.decode(errors='replace')
        err = err.decode(errors='replace')

    return ecode, out, err


def git_get_toplevel(path: Optional[str] = None) -> Optional[str]:
    topdir = None
    # Are we in a git tree and if so, what is our toplevel?
    gitargs = ['rev-parse', '--show-toplevel']
    ecode, out, err = git_run_command(None, gitargs, rundir=path)
    if ecode != 0:
        return None
    lines = [line for line in out.split('\n') if line]
    if len(lines) == 1:
        topdir = lines[0]
    return topdir


def get_config_from_git(regexp: str, defaults: Optional[dict] = None,
                        gitdir: Optional[str] = None) -> dict:
    args = ['config', '-z', '--get-regexp', regexp]
    ecode, out, err = git_run_command(gitdir, args)
    gitconfig = defaults
    if not gitconfig:
        gitconfig = dict()
    if not out:
        return gitconfig

    for line in out.split('\x00'):
        if not line:
            continue
        if '\n' in line:
            key, value = line.split('\n', 1)
        else:
            key, value = line, 'true'
        chunks = key.split('.')
        cfgkey = chunks[-1].lower()
        gitconfig[cfgkey] = value

    return gitconfig


def get_main_config(gitdir: Optional[str] = None) -> Dict[str, str]:
    global MAIN_CONFIG
    if MAIN_CONFIG is None:
        defcfg = copy.deepcopy(DEFAULT_CONFIG)
        config = get_config_from_git(r'branchdiffs\..*', defaults=defcfg, gitdir=gitdir)
        logger.debug('config=%s', config)
        MAIN_CONFIG = config

    return MAIN_CONFIG


def _decode(out: bytes, what: str) -> str:
    try:
        return out.decode()
    except UnicodeDecodeError as ex:
        raise RepositoryError('%s returned non-UTF-8 output: %s' % (what, ex))


def get_commit_bodies(source: CommitLogSource, start: str, end: str) -> List[str]:
    """Get the bodies of the commits from start to end. This includes end but
    not start. Each list element is one line of a body, with all bodies joined
    together in log order (newest first)."""
    out = _decode(source.log_bodies(start, end), 'git log')
    lines = out.split('\n')
    if lines and lines[-1] == '':
        lines.pop()
    return [line[:-1] if line.endswith('\r') else line for line in lines]


def get_differential_revision(line: str) -> Optional[str]:
    """If the line is of the form "Differential Revision: https://.../D1234",
    return "D1234", otherwise None."""
    if not line.startswith(DIFF_TRAILER):
        return None
    url = line[len(DIFF_TRAILER):].strip()
    try:
        loc = urllib.parse.urlsplit(url)
        # raises on a malformed port
        loc.port
    except ValueError:
        return None
    # Must be absolute, though the authority may be empty (file:///D12)
    if not loc.scheme:
        return None
    matches = DIFF_PATH_RE.fullmatch(loc.path)
    if not matches:
        return None
    return matches.group(1)


def get_branches(source: CommitLogSource) -> List[BranchInfo]:
    branches = list()
    for record in source.list_branches().split(b'\n'):
        if not record:
            continue
        parts = record.split(b'\x00')
        if len(parts) != 2:
            raise RepositoryError('for-each-ref parse error, got %s parts, expected 2' % len(parts))
        branch = _decode(parts[0], 'for-each-ref')
        upstream = None
        if parts[1]:
            upstream = _decode(parts[1], 'for-each-ref')
        branches.append(BranchInfo(branch, upstream))

    return branches


def get_merge_base(source: CommitLogSource, a: str, b: str) -> str:
    merge_base = _decode(source.merge_base(a, b), 'git merge-base').strip()
    if not merge_base:
        raise RepositoryError('No merge base between %s and %s' % (a, b))
    return merge_base


def get_branch_diffs(source: CommitLogSource, branch: str, target: str) -> List[str]:
    """Return the Differential revisions referenced by commits on branch that
    are not on target, oldest first. Repeated references are all kept."""
    merge_base = get_merge_base(source, branch, target)
    logger.debug('Merge base of %s and %s is %s', branch, target, merge_base)
    diffs = list()
    for line in reversed(get_commit_bodies(source, merge_base, branch)):
        diff = get_differential_revision(line)
        if diff:
            diffs.append(diff)
    logger.debug('Found %s revisions on %s', len(diffs), branch)
    return diffs
