"""Console browser for OPC UA server address spaces."""

__version__ = "1.0.0"
