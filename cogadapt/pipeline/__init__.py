"""
Main Pipeline Module.

Wires capture, signal processing and preference adaptation together.
"""

from .orchestrator import AdaptivePipeline
