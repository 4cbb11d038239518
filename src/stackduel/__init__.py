"""stackduel: compare two HTTP-serving stacks side by side."""

__version__ = "0.1.0"
