"""
Pack Balancer - Main Package
============================

Tools for building balanced battery packs out of individually measured
cells.

This package provides modules for:
- Pack Balancer (pack_balancer): impedance balancing of cells across packs
- User Interface (ui): tkinter front end for the balancer

Author: Pack Balancer Team
"""

__version__ = "0.1.0"
__author__ = "Pack Balancer Team"
