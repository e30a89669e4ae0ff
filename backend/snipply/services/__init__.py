# Services package init
"""
Snipply Backend — Services Layer
==================================

What:  Business rules between the routes (HTTP) and storage (persistence).
How:   Stateless singletons; each call receives the request's Storage as its
       first argument and raises SnipplyError subclasses on failure.

Service Inventory:
    - AuthService:    registration, login, current user, admin bootstrap
    - SnippetService: listings, visibility, views, likes, follower fan-out
    - SocialService:  profiles, follows, notifications, profile edits
    - AdminService:   moderation listings, removals, ranks, site totals
"""
