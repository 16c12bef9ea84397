"""Built-in compatibility dataset."""
