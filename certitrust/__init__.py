"""
Certificate Verification Pipeline

This package contains the complete pipeline for certificate verification:
- Text extraction and tampering analysis using OpenAI Vision
- Shell ID fingerprinting of extracted and stored records
- Fuzzy matching against the Blockchain and DigiLocker record stores
- Trust scoring and final verdict
"""

__version__ = "1.0.0"
