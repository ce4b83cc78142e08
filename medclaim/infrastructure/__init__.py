"""Infrastructure layer: configuration, settings, logging and the content-store client."""
