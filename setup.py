# Copyright (C) 2009 Canonical Ltd.
# Copyright (C) 2012 Yahoo! Inc.
#
# This file is part of coreos-metadata. See LICENSE for license information.

# Setuptools magic for coreos-metadata

import os
import sys

import setuptools

# Python-path here is a little unpredictable as setup.py could be run
# from a directory other than the root of the repo, so ensure we can find
# our utils
sys.path.insert(0, os.path.dirname(os.path.realpath(__file__)))
# isort: off
from setup_utils import get_version, read_requires  # noqa: E402

# isort: on
del sys.path[0]

requirements = read_requires()

setuptools.setup(
    name="coreos-metadata",
    version=get_version(),
    description="Fetch cloud provider metadata and write it out at boot",
    url="https://github.com/coreos/coreos-metadata",
    packages=setuptools.find_packages(exclude=["tests.*", "tests"]),
    license="Apache 2.0",
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "test": read_requires("test-requirements.txt"),
    },
    entry_points={
        "console_scripts": [
            "coreos-metadata = coreosmetadata.cmd.main:main",
        ],
    },
)
