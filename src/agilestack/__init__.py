"""AgileStack core: Docker-backed plugin registry served over NATS."""

__version__ = "0.1.0"
