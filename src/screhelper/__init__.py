"""screhelper - LLM-assisted title/abstract screening for systematic reviews."""

__version__ = "0.1.0"
