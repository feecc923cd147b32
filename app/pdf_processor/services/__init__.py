"""
Services package for the PDF processor application.

Contains:
- ai: OpenAI integration for financial data extraction
- registry: Transient registry of processed files with expiry
- pdf_processing_service: Upload intake and extraction pipeline
- user_service: User directory and role management
"""

from .ai import AIService
from .pdf_processing_service import PdfProcessingService
from .registry import ProcessedFileRegistry
from .user_service import UserService

__all__ = ["AIService", "PdfProcessingService", "ProcessedFileRegistry", "UserService"]
