"""Scripted university helpdesk chatbot."""

__version__ = "0.1.0"
