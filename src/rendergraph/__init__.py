"""rendergraph: evaluate AI image-generation node graphs from the command line."""

__version__ = "0.1.0"
