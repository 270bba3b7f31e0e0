"""
sampleverify: compile-check the code samples embedded in documentation.
"""

__version__ = "1.0.0"
