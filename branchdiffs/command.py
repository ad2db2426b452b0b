#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: GPL-2.0-or-later
# Copyright (C) 2020 by the Linux Foundation
#
import argparse
import logging
import branchdiffs

logger = branchdiffs.logger


def setup_parser() -> argparse.ArgumentParser:
    # noinspection PyTypeChecker
    parser = argparse.ArgumentParser(
        prog='branchdiffs',
        description='List Differential revisions on each local branch along with their review status',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument('--version', action='version', version=branchdiffs.__VERSION__)
    parser.add_argument('-d', '--debug', action='store_true', default=False,
                        help='Add more debugging info to the output')
    parser.add_argument('-q', '--quiet', action='store_true', default=False,
                        help='Output critical information only')
    parser.add_argument('-g', '--gitdir', default=None,
                        help='Operate on this git tree instead of the current directory')
    parser.add_argument('-t', '--target', default=None,
                        help='Compare branches against this branch (default: branchdiffs.target-branch, or master)')
    parser.add_argument('-u', '--use-upstream', dest='use_upstream', action='store_true', default=False,
                        help='Compare each branch against its upstream, if it has one')
    parser.add_argument('-s', '--summaries', action='store_true', default=False,
                        help='Show the summary of each revision after its status')
    parser.add_argument('--color', choices=['auto', 'always', 'never'], default=None,
                        help='When to colour the output (default: branchdiffs.color, or auto)')

    return parser


def cmd():
    parser = setup_parser()
    cmdargs = parser.parse_args()
    logger.setLevel(logging.DEBUG)

    ch = logging.StreamHandler()
    formatter = logging.Formatter('%(message)s')
    ch.setFormatter(formatter)

    if cmdargs.quiet:
        ch.setLevel(logging.CRITICAL)
    elif cmdargs.debug:
        ch.setLevel(logging.DEBUG)
    else:
        ch.setLevel(logging.INFO)

    logger.addHandler(ch)

    import branchdiffs.report
    branchdiffs.report.main(cmdargs)


if __name__ == '__main__':
    cmd()
