#!/usr/bin/python3
# Setup file for gitcenter
# Copyright (C) 2026 The gitcenter authors
# SPDX-License-Identifier: Apache-2.0 OR GPL-2.0-or-later

from setuptools import setup

tests_require = ["aiohttp"]

setup(
    name="gitcenter",
    version="0.1.0",
    description="Git object engine for repositories kept in a remote file store",
    license="Apache-2.0 OR GPL-2.0-or-later",
    python_requires=">=3.9",
    packages=["gitcenter"],
    package_data={"": ["py.typed"]},
    install_requires=["aiohttp>=3.9"],
    extras_require={
        "test": tests_require,
        "dev": ["ruff", "mypy"],
    },
    entry_points={
        "console_scripts": ["gitcenter=gitcenter.cli:_main"],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "License :: OSI Approved :: Apache Software License",
        "Programming Language :: Python :: 3",
        "Operating System :: POSIX",
        "Topic :: Software Development :: Version Control",
    ],
)
