"""
withserver - run a test command against a freshly started local HTTP server

withserver starts a server, waits until it answers HTTP requests, runs the
given test command, tears the whole server process tree down and exits with
the test command's status.
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
