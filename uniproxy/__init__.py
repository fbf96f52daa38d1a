"""
uniproxy - gateway that mediates API calls, generic HTTP requests and
headless-browser scraping to external destinations.
"""

__version__ = "0.1.0"
