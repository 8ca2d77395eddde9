"""Built-in notifier plugins."""
