"""
TransferPilot - Move large file sets onto external drives with preflight checks and verification
"""

__version__ = "0.3.0"
__author__ = "TransferPilot Developers"
__license__ = "MIT"
__description__ = "Move large file sets onto external drives with preflight checks and verification"
__project_name__ = "TransferPilot"
__copyright__ = f"Copyright 2025 {__author__}"
