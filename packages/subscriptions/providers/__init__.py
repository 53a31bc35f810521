"""External providers for the subscriptions package."""
