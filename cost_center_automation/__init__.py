"""
GitHub Copilot cost center automation.
"""

__version__ = "1.0.0"
