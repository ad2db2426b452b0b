#!/usr/bin/env python3

import os
import re
from setuptools import setup

# Utility function to read the README file.
# Used for the long_description.


def read(fname):
    with open(os.path.join(os.path.dirname(__file__), fname)) as fh:
        return fh.read()


def find_version(source):
    version_file = read(source)
    version_match = re.search(r"^__VERSION__ = ['\"]([^'\"]*)['\"]", version_file, re.M)
    if version_match:
        return version_match.group(1)
    raise RuntimeError("Unable to find version string.")


NAME = 'branchdiffs'

setup(
    version=find_version('branchdiffs/__init__.py'),
    name=NAME,
    description='Show the Differential revisions on each local git branch and their review status',
    packages=['branchdiffs'],
    license='GPLv2+',
    long_description=read('README.rst'),
    long_description_content_type='text/x-rst',
    keywords=['git', 'arcanist', 'phabricator', 'differential', 'branches'],
    install_requires=[],
    extras_require={
        'test': [
            'pytest',
        ],
    },
    python_requires='>=3.8',
    entry_points={
        'console_scripts': [
            'branchdiffs=branchdiffs.command:cmd'
        ],
    },
)
