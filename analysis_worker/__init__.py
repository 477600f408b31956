"""Background analysis worker: discovers eligible calls and scores them in batches."""

__version__ = "0.1.0"
