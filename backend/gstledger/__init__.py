"""
GST invoicing and reconciliation engine
"""
__version__ = "1.0.0"
