"""
Walle E2E - resilient browser automation for the Walle agent product.
"""

__version__ = "0.1.0"
