# Routes package init
"""
BizzyLink Backend: API Routes Package
======================================

Route Inventory:
    - auth.py:          /api/auth           register, login, logout, profile, refresh
    - users.py:         /api/users          profile, settings, stats, balance, donate,
                                            reputation, vouches
    - forum.py:         /api/forum          categories, threads, posts, likes, search
    - social.py:        /api/friends        requests, friends
                        /api/following      follow, unfollow, followers
    - minecraft.py:     /api/minecraft      link codes, plugin endpoints
    - notifications.py: /api/notifications  inbox
    - wall.py:          /api/wall          profile wall posts, likes, comments, reposts
    - admin.py:         /api/admin          dashboard API
    - health.py:        /health

Routes stay thin: parse the request, pick the caller through a dependency,
call one service method, return its schema.
"""
