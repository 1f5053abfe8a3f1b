"""Content harvester: reconcile maps, monsters and items into a JSON corpus."""

__version__ = "1.0.0"
