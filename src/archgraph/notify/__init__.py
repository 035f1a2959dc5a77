from archgraph.notify.change_notifier import ChangeEvent, ChangeNotifier, Subscription

__all__ = ["ChangeEvent", "ChangeNotifier", "Subscription"]
