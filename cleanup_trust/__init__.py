"""
Cleanup Trust Engine - verification and consensus service for civic cleanups
"""
__version__ = "1.0.0"
