"""
Contract analysis backend: document upload, AI risk analysis, reports.
"""
__version__ = "1.0.0"
