"""pants-runner: discover build targets and run build tool goals on them."""

__version__ = "0.1.0"
