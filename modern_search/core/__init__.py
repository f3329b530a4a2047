"""
Core module for shared configuration, schemas, and utilities.

This module provides foundational components used across the application:
- Configuration management
- Pydantic schemas for requests, filters and result pages
- Exception types shared by the backend client and the pipeline
- The date formatting service used for refinement labels
"""
