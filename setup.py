#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Setup script for EnergyIntegration

This file is kept for legacy tooling and pip editable installs.
The package configuration is in pyproject.toml.
"""

from setuptools import setup

# All configuration comes from pyproject.toml
setup()
