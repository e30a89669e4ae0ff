# Routes package init
"""
Snipply Backend — API Routes Package
======================================

Route Inventory:
    - auth.py:          /api/auth/*, /api/setup/admin
    - snippets.py:      /api/snippets*, /api/my-snippets
    - users.py:         /api/users/*, /api/following, /api/followers, /api/profile*
    - notifications.py: /api/notifications*
    - admin.py:         /api/admin/*
    - health.py:        /health

Routes stay thin: read the request, check the session, call one service,
shape the response. Business rules live in snipply.services.
"""
