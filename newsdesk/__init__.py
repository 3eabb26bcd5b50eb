"""
Core package for the newsdesk transcriber.

This package contains the Flask application and the modular components it
drives: upload validation, Gemini transcription, the transcript assistant,
transcript search and formatting of assistant replies.
"""
