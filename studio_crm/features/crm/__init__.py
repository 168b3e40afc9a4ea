"""
CRM feature package.

This vertical slice keeps the contact, chat-identity, reservation and
notification layers co-located (domain models, services, API router) so
contributors can navigate the feature without hunting through global
folders.
"""
