"""craftboot - a command-line Minecraft launcher."""

__version__ = "0.3.0"

# Descriptor format revision understood by this launcher.
LAUNCHER_FORMAT_VERSION = 21
