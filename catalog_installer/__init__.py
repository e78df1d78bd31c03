"""AviUtl2 catalog package installer — declarative install/uninstall engine."""

__version__ = "0.1.0"
