"""
CLI Tools for Simulation and Development
"""

from .simulator_cli import app, ConversationSimulator

__all__ = [
    "app",
    "ConversationSimulator",
]
