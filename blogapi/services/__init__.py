# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic and database access for one area:
#
#   toggle_service      : the generic toggle engine over the interaction ledgers
#   interaction_service : like / collect / comment-like / follow entry points
#   article_service     : article CRUD, home feed (cached) and detail view
#   comment_service     : comments on articles, soft delete
#   category_service    : categories and their article counts
#   user_service        : accounts, sessions, follow and collection lists
#   author_apply_service: author applications and their review
#   admin_service       : account listing, role changes and bans
#
# All service functions accept an AsyncSession as their first argument
# so that the router layer controls the transaction boundary via the
# ``get_db`` dependency.
