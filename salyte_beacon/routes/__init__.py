"""
API Routes

This package contains Flask blueprints for:
- auth: Registration, login, password reset and profile management
- chat: AI water assistant conversations
- sensors: Sensor marketplace and reading submission
- map: Water point map data
- dashboard: Monitoring statistics, trends and CSV import
- report: Community incident reports
"""
