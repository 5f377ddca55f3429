"""
Campus Session - Session lifecycle manager for the course portal

Keeps a user's authentication session consistent across process starts and
asynchronous identity-provider notifications.

Architecture:
- Each module is self-contained with clear interfaces
- Modules are completely replaceable
- No module knows the internals of another
- All communication through defined interfaces

Modules:
- storage: Persisted credential store contract and adapters
- identity: Identity provider client and event subscription
- profile: Profile record store and single-flight profile loader
- session: Initializer, event consumer, circuit breaker and session state
- api: HTTP request/response models
"""

__version__ = "1.0.0"
