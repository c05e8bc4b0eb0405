"""
Enumerations for rails2js.

This module defines the standard enumerations shared by the configuration
layer, the metadata records and the filters.
"""

from enum import Enum


class ImportMode(str, Enum):
  """
  Controls how generated import statements address other units.

  ``EJECT`` emits relative file paths (``../models/article.js``) so the output
  tree is standalone. ``VIRTUAL`` emits virtual module specifiers
  (``juntos:models``) resolved by a bundler plugin.
  """

  EJECT = "eject"
  VIRTUAL = "virtual"


class TargetEnvironment(str, Enum):
  """
  Runtime the generated code is meant for.

  Affects real-time broadcast lowering: ``BROWSER`` broadcasts over an
  in-process channel, server targets render an inline subscription snippet.
  """

  BROWSER = "browser"
  NODE = "node"
  EDGE = "edge"


class UnitKind(str, Enum):
  """Structural unit categories recognized by unit detection."""

  MODEL = "model"
  CONTROLLER = "controller"
  VIEW = "view"
  ROUTES = "routes"
  SEEDS = "seeds"
  TEST = "test"
  OTHER = "other"


class AssociationKind(str, Enum):
  """
  Relationship kinds declared on a data-model unit.

  The values match the declaration keyword that produces them, except
  ``POLYMORPHIC`` which is a ``belongs_to`` with ``polymorphic: true``.
  """

  HAS_MANY = "has_many"  # to-many
  HAS_ONE = "has_one"  # to-one-owned
  BELONGS_TO = "belongs_to"  # to-one-owning
  POLYMORPHIC = "polymorphic"  # polymorphic-to-one
