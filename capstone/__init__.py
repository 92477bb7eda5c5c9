"""
Capstone Connect
Matchmaking platform for university capstone projects.

Architecture:
- SQLite: all structured data (users, projects, interests, favorites, gallery)
- config_settings table: runtime branding, feature flags and business rules
- JWT authentication for students, clients and administrators
"""

__version__ = "1.0.0"
