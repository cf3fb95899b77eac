#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Minimal setup.py for arimalab. All metadata lives in pyproject.toml; this file
only keeps legacy ``python setup.py`` invocations working.
"""

import setuptools

if __name__ == "__main__":
    setuptools.setup()
