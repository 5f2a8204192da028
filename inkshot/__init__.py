"""inkshot - dashboard screenshots for e-ink displays"""

__version__ = "0.2.0"
