"""Chatbot flow execution engine and preview API"""

__version__ = "0.1.0"
