"""
Flight request workflow: submission by clients, decisions by admins.
"""
