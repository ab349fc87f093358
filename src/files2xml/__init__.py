"""files2xml: embed a set of files and their metadata into one XML document."""

__version__ = "1.0.0"
