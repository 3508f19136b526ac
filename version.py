"""
Version information for the job intelligence service.

Single source of truth: the pipeline package, the FastAPI app and setup.py
all read __version__ from here.
"""

__version__ = "0.3.0"
__version_info__ = (0, 3, 0)
