"""
PDF Processor Backend Application.

A FastAPI service that authenticates users, accepts annual-report PDF
uploads and extracts structured financial figures from them using an
LLM (OpenAI chat completions with PDF input).
"""

__version__ = "1.0.0"
