"""
RMVS - Resource Map Verification System

Autonomous verification of community resource submissions: tiered
automated and AI-assisted checks, a combined confidence score and an
approve / flag / reject decision for every suggestion.
"""

__version__ = "0.1.0"
