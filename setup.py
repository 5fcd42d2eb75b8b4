#!/usr/bin/env python3
"""
setup.py compatibility wrapper for Debian packaging tools.

netdra is built from pyproject.toml with hatchling. This file only exists for
tools (like stdeb) that still look for a setup.py.

For normal installation, use:
    pip install .
"""

from setuptools import setup

setup()
