"""Query Bridge: run batches of SQL queries over HTTP and return JSON."""

__version__ = "0.1.0"
