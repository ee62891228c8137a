"""
Utility Functions

This package contains helper functions for:
- auth_middleware: Bearer tokens and authorization decorators
- rate_limiter: Per-client request windows
- water_quality: Drinking water thresholds
- file_handler: CSV upload and parsing
- errors: API error types
- validators: Request field coercion and pagination
"""
