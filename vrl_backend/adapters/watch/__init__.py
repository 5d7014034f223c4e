from .notifier import DirectoryChangeNotifier, DirectoryEventHandler

__all__ = ["DirectoryChangeNotifier", "DirectoryEventHandler"]
