"""
clinicslots - staff availability and booking conflict engine.
"""

__version__ = "0.1.0"
