"""
Pack Balancer UI Module
=======================

Graphical interface for the Pack Balancer:

- PackBalancerUI: load measurements, run the optimizer, review and export
  the ranked packs

Usage:
------
    from src.ui import PackBalancerUI

    PackBalancerUI().run()
"""

from .pack_balancer_ui import PackBalancerUI

__all__ = [
    "PackBalancerUI",
]
