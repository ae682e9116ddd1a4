"""
Identity store services.
"""
