"""
API Routers Package

Router Structure:
- auth.py: /register, /login, /validate (identity service)
- users.py: /users, /delete-user/{id} (identity service)
- books.py: /books/* (catalog service)
- exchange_requests.py: /exchange-requests/* (exchange service)
- websocket.py: /ws (every service)

Each router is registered by its service's factory in main.py.
"""

from bookcrossing.routers.auth import router as auth_router
from bookcrossing.routers.books import router as books_router
from bookcrossing.routers.exchange_requests import router as exchange_requests_router
from bookcrossing.routers.users import router as users_router
from bookcrossing.routers.websocket import router as websocket_router

__all__ = [
    "auth_router",
    "books_router",
    "exchange_requests_router",
    "users_router",
    "websocket_router",
]
