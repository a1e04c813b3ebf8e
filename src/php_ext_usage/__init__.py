"""Static detection of PHP extension usage."""

__version__ = "1.0.0"
