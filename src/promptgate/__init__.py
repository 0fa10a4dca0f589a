"""promptgate - prompt regression testing, quality gates and draft publishing."""

__version__ = "0.1.0"
