# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for a single domain aggregate:
#
#   article_service  - CRUD + tag links + cache for Article
#   tag_service      - CRUD + cache for Tag
#   user_service     - lookup for User
#   upload_service   - file upload validation and storage
#
# Database service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.
