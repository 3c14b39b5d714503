"""pluginctl — build, test and deploy host-application plugins."""

__version__ = "0.1.0"
