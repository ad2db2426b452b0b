#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2020 by the Linux Foundation
#
import re
import shlex

import branchdiffs

from typing import Optional, Dict

logger = branchdiffs.logger

NO_REVISIONS = 'You have no open Differential revisions.'

# Output of `arc list` is either NO_REVISIONS, or a table with the columns:
#   * Exists (an asterisk or blank)
#   * Status ("Needs Review" etc)
#   * Title ("D1234: Foo bar")
# The table is not fixed width, column widths depend on the content.
ARC_LIST_RE = re.compile(r'^(?P<exists>\* )?(?P<status>[\w ]+?) (?P<diff>D\d+): (?P<summary>.*)$')


class ReviewInfo:
    # Opaque flag, passed through as arc reports it
    exists: bool
    status: str
    summary: str

    def __init__(self, exists: bool, status: str, summary: str):
        self.exists = exists
        self.status = status
        self.summary = summary

    def __eq__(self, other):
        return (self.exists == other.exists
                and self.status == other.status
                and self.summary == other.summary)

    def __repr__(self):
        out = list()
        out.append('  exists: %s' % self.exists)
        out.append('  status: %s' % self.status)
        out.append('  summary: %s' % self.summary)

        return '\n'.join(out)


class ReviewListingSource:
    def list_revisions(self) -> bytes:
        raise NotImplementedError


class ArcListing(ReviewListingSource):
    command: str
    rundir: Optional[str]

    def __init__(self, command: str = 'arc', rundir: Optional[str] = None):
        self.command = command
        self.rundir = rundir

    def list_revisions(self) -> bytes:
        sp = shlex.shlex(self.command, posix=True)
        sp.whitespace_split = True
        try:
            cmdargs = list(sp) + ['list']
        except ValueError as ex:
            raise branchdiffs.ReviewToolError('Unable to parse arc-command %r: %s' % (self.command, ex))
        try:
            ecode, out, err = branchdiffs._run_command(cmdargs, rundir=self.rundir)
        except OSError as ex:
            raise branchdiffs.ReviewToolError('Unable to run %s: %s' % (cmdargs[0], ex))
        if ecode != 0:
            raise branchdiffs.ReviewToolError('%s failed with exit code %s: %s'
                                              % (' '.join(cmdargs), ecode, err.decode(errors='replace').strip()))
        return out


def parse_review_table(output: str) -> Dict[str, ReviewInfo]:
    output = output.strip()
    arcinfo = dict()
    if output == NO_REVISIONS:
        return arcinfo

    for line in output.split('\n'):
        line = line.rstrip('\r')
        if not line:
            continue
        matches = ARC_LIST_RE.match(line)
        if not matches:
            raise branchdiffs.TableParseError(line)
        diff = matches.group('diff')
        if diff in arcinfo:
            logger.debug('Duplicate entry for %s, using the later one', diff)
        arcinfo[diff] = ReviewInfo(exists=matches.group('exists') is not None,
                                   status=matches.group('status').strip(),
                                   summary=matches.group('summary').strip())

    return arcinfo


def get_arc_info(source: ReviewListingSource) -> Dict[str, ReviewInfo]:
    out = source.list_revisions()
    try:
        output = out.decode()
    except UnicodeDecodeError as ex:
        raise branchdiffs.ReviewToolError('arc list returned non-UTF-8 output: %s' % ex)
    arcinfo = parse_review_table(output)
    logger.debug('Found %s open revisions', len(arcinfo))
    return arcinfo
