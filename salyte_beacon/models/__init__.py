"""
Database Models

This package contains MongoDB model classes for:
- User: Authentication, profile, subscription and API quota
- Sensor: Marketplace sensor listings
- Reading: Water quality measurements
- WaterPoint: Mapped water sources
- Report: Community incident reports
- Conversation: AI assistant chat sessions
"""
