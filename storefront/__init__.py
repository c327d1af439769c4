"""Storefront cart, bundle pricing and checkout engine"""

__version__ = "1.0.0"
