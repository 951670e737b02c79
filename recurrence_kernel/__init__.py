"""
Recurrence Kernel

Persistence and domain core for recurring tasks and transactions:
- Day-granularity calendar arithmetic
- Natural-key and series-key identity for recurring obligations
- Template lifecycle (create, consume, re-anchor, deactivate)
- Concrete record storage with per-period uniqueness
"""

__version__ = "0.1.0"
