"""
Local workspace and output directory management
"""
