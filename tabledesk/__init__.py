"""
TableDesk - offline-tolerant editing sessions for delimited tabular documents.
"""

__version__ = "1.0.0"
