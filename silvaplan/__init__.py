"""SilvaPlan: conversational planning assistant for tree planting and maintenance."""

__version__ = "0.1.0"
