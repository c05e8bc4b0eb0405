"""
Built-in Filters.

Importing this package registers every built-in filter with the registry in
:mod:`rails2js.core.hooks`:

- ``model``: data-model classes (``class X < ApplicationRecord``).
- ``controller``: controllers, one async function per action.
- ``view``: compiled template buffer programs.
- ``routes``: the ``routes.draw`` block.
- ``seeds``: the ``Seeds`` module.
- ``logger``: ``Rails.logger`` calls, in any unit.
- ``testsuite``: test classes.
"""

from rails2js.filters import controller, logger, model, routes, seeds, testsuite, view

__all__ = ["controller", "logger", "model", "routes", "seeds", "testsuite", "view"]
