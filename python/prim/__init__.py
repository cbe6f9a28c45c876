"""Private Registry Image Manager: build, deploy and clean up project container images."""

__version__ = "1.0.0"
