"""In-process topic-based publish/subscribe bus, its queue, a service layer and YAML configuration."""

__version__ = "0.1.0"

__all__ = ["config", "queue", "service", "subpub"]