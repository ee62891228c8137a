"""
Configuration

- database: MongoDB connection, indexes and sample data
"""
