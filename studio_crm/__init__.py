"""
Studio CRM backend.
"""
