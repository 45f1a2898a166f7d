"""
Dayspring Marketplace backend
"""
