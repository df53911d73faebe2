"""
FeedEnricher Ingestion Module
=============================

Content cleaning for feed descriptions and extracted article bodies.

This module handles:
- Reduction of arbitrary HTML to a safe markup subset
- Plain text extraction from sanitized markup
"""
