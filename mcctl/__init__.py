"""mcctl — control plane for a single Minecraft server process."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("mcctl")
except PackageNotFoundError:
    __version__ = "0.1.0"  # fallback for development
