"""A manager, node agents and a client for handing out tasks over TCP."""

__version__ = "0.1.0"
__all__ = ["client", "constants", "logger", "manager", "node_agent"]