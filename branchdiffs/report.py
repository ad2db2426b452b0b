#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2020 by the Linux Foundation
#
import argparse
import sys

import branchdiffs
import branchdiffs.arc

from typing import Dict, List, Optional, TextIO

logger = branchdiffs.logger

ANSI_RESET = '\033[0m'
ANSI_BOLD = '\033[1m'
ANSI_DIM = '\033[2m'

STATUS_COLORS = {
    'Closed': '\033[36m',
    'Needs Review': '\033[35m',
    'Needs Revision': '\033[31m',
    'Changes Planned': '\033[31m',
    'Accepted': '\033[32m',
    'No Revision': '\033[34m',
    'Abandoned': ANSI_DIM,
}


def get_status_color(status: str) -> str:
    return STATUS_COLORS.get(status, '')


def colorize(text: str, color: str) -> str:
    if not color:
        return text
    return f'{color}{text}{ANSI_RESET}'


def format_branch_line(branch: str, diffs: List[str], arcinfo: Dict[str, branchdiffs.arc.ReviewInfo],
                       width: int = 0, color: bool = True, summaries: bool = False) -> str:
    """Render one branch, followed by each of its revisions and their status.
    Revisions arc knows nothing about are shown without a status."""
    out = branch.ljust(width)
    if color and diffs:
        out = colorize(out, ANSI_BOLD)

    for diff in diffs:
        out += ' ' + (colorize(diff, ANSI_BOLD) if color else diff)
        info = arcinfo.get(diff)
        if info is None:
            continue
        status = colorize(info.status, get_status_color(info.status)) if color else info.status
        out += f' ({status})'
        if summaries and info.summary:
            out += f' {info.summary}'

    return out


def report_branches(branches: List[branchdiffs.BranchInfo], commitlog: branchdiffs.CommitLogSource,
                    arcinfo: Dict[str, branchdiffs.arc.ReviewInfo], target: str, fh: TextIO,
                    color: bool = True, summaries: bool = False, use_upstream: bool = False) -> None:
    width = max((len(x.branch) for x in branches), default=0) + 2
    for binfo in branches:
        against = target
        if use_upstream and binfo.upstream:
            against = binfo.upstream
        logger.debug('Resolving %s against %s', binfo.branch, against)
        diffs = branchdiffs.get_branch_diffs(commitlog, binfo.branch, against)
        fh.write(format_branch_line(binfo.branch, diffs, arcinfo, width=width, color=color,
                                    summaries=summaries) + '\n')


def want_color(setting: str, fh: TextIO) -> bool:
    if setting == 'always':
        return True
    if setting == 'never':
        return False
    return fh.isatty()


def main(cmdargs: argparse.Namespace, fh: Optional[TextIO] = None) -> None:
    if fh is None:
        fh = sys.stdout

    topdir = branchdiffs.git_get_toplevel(cmdargs.gitdir)
    if not topdir:
        logger.critical('Not inside a git repository.')
        sys.exit(1)

    config = branchdiffs.get_main_config(gitdir=cmdargs.gitdir)
    target = cmdargs.target or config['target-branch']
    color = want_color(cmdargs.color or config['color'], fh)

    commitlog = branchdiffs.GitCommitLog(gitdir=cmdargs.gitdir)
    listing = branchdiffs.arc.ArcListing(command=config['arc-command'], rundir=topdir)
    try:
        arcinfo = branchdiffs.arc.get_arc_info(listing)
        branches = branchdiffs.get_branches(commitlog)
        report_branches(branches, commitlog, arcinfo, target, fh, color=color,
                        summaries=cmdargs.summaries, use_upstream=cmdargs.use_upstream)
    except (branchdiffs.RepositoryError, branchdiffs.ReviewToolError, branchdiffs.TableParseError) as ex:
        logger.critical('CRITICAL: %s', ex)
        sys.exit(1)
