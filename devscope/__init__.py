"""
devscope - request capture, audit and log browsing for local development
"""
__version__ = "0.1.0"
