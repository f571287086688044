"""Move a Ganeti instance to another node, optionally switching hypervisor."""

__version__ = "0.3.0"
