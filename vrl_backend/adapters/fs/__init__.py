from .local import LocalDirectoryLister

__all__ = ["LocalDirectoryLister"]
