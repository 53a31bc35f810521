"""Built-in plan definitions."""
