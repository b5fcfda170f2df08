from . import radar, tracking

__all__ = ["radar", "tracking"]
