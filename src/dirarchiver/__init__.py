"""dirarchiver - archive each subdirectory of a root into its own zip file."""

__version__ = "0.3.0"
