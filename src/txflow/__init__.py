"""Transaction lifecycle client: build, sign, submit, register and watch."""

__version__ = "0.1.0"
