"""cpr - git-based project templating.

Fetches a template repository, asks the questions its manifest declares and
renders the template tree into a new project directory.
"""

__version__ = "0.2.0"

# Configure logging for library use
import logging

logging.getLogger(__name__).addHandler(logging.NullHandler())

# Re-export main CLI entry point
from .cli import main

__all__ = ["main"]
