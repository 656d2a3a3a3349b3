"""
Fetching and encoding pipeline
"""
