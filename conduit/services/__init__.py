# Services package.
#
# Each module holds one service class that encapsulates the business
# rules for a single aggregate and talks to storage only through the
# abstract repositories in ``conduit.repositories.base``:
#
#   user_service     registration, login, tokens, profiles, follows
#   article_service  publish/edit/delete, slugs, favorites, feed, tags
#   comment_service  add/list/delete comments with an ownership check
#
# Services never commit; the router layer owns the transaction boundary
# through the ``get_db`` dependency.  See ``conduit.wiring`` for how
# they are assembled.
