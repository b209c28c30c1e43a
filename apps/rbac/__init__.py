"""
Identity & authorization application.

Provides:
- Client/admin user identities with one organization each
- Session tokens backed by server-side session rows
- The authorization gate mapping operations to roles
- Audit logging
"""
