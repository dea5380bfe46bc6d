"""
CLIモジュール
"""

from nara_bid.cli.main import cli, main

__all__ = ["cli", "main"]
