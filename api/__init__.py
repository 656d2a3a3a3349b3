"""
Reelcast HTTP API
"""
