"""Infrastructure layer - backend client, plugins, persistence and observability."""
