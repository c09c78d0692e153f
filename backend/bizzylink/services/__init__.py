# Services package init
"""
BizzyLink Backend: Services Layer
==================================

Business rules between the routes and the database. Services receive the
request's AsyncSession, flush their changes and leave the commit to the
session dependency. Each module exposes one stateless singleton.

Service Inventory:
    - user_service:         lookups, profile, privacy, balance, donations
    - auth_service:         register, login lockout, token refresh
    - forum_service:        categories, threads, posts, likes, search
    - reputation_service:   reputation votes and vouches
    - social_service:       friend requests, friendships, follows
    - notification_service: in-site notifications
    - link_service:         Minecraft link codes and plugin calls
    - link_notifier:        outbound link/unlink webhook (httpx + tenacity)
    - admin_service:        user management, moderation, audit log
"""
