"""
Tests for the cross-unit metadata bus.

Verifies:
1. Write-once semantics (idempotent re-publish, conflicting writes raise).
2. Lookups of unknown units return the UNKNOWN marker instead of raising.
3. The tri-state model check.
4. Association search across models.
"""

import pytest

from rails2js.core.bus import UNKNOWN, BusWriteError, MetadataBus, get_bus, reset_bus
from rails2js.core.metadata import AssociationRecord, ControllerFacts, ModelFacts
from rails2js.enums import AssociationKind, ImportMode, UnitKind


def _article(**kwargs):
  comments = AssociationRecord.derive(AssociationKind.HAS_MANY, "comments", "Article")
  return ModelFacts(name="Article", table_name="articles", associations=[comments], **kwargs)


def test_register_and_lookup(bus):
  bus.register(_article(file_path="app/models/article.rb"))
  assert "Article" in bus
  assert len(bus) == 1
  assert bus.lookup("Article").table_name == "articles"
  assert bus.file_path("Article") == "app/models/article.rb"
  assert list(bus) == ["Article"]


def test_republish_identical_facts_is_noop(bus):
  bus.register(_article())
  bus.register(_article())
  assert len(bus) == 1


def test_conflicting_write_raises(bus):
  bus.register(_article())
  with pytest.raises(BusWriteError):
    bus.register(ModelFacts(name="Article", table_name="posts"))


def test_unknown_lookup_is_falsy_marker(bus):
  result = bus.lookup("Ghost")
  assert result is UNKNOWN
  assert not result
  assert bus.model("Ghost") is UNKNOWN
  assert bus.file_path("Ghost") is None


def test_tri_state_model_check(bus):
  bus.register(_article())
  bus.register(ControllerFacts(name="ArticlesController", model="Article"))
  assert bus.is_model("Article") is True
  assert bus.is_model("ArticlesController") is False
  assert bus.is_model("Ghost") is None
  assert bus.model("ArticlesController") is None


def test_units_and_models(bus):
  bus.register(_article())
  bus.register(ControllerFacts(name="ArticlesController"))
  assert list(bus.models()) == ["Article"]
  assert [u.name for u in bus.units(UnitKind.CONTROLLER)] == ["ArticlesController"]
  assert len(bus.units()) == 2


def test_association_search(bus):
  bus.register(_article())
  assert bus.association_names() == {"comments"}
  assert bus.find_association("comments").target == "Comment"
  assert bus.find_association("comments", owner="Article").foreign_key == "article_id"
  assert bus.find_association("comments", owner="Comment") is None
  assert bus.find_association("tags") is None


def test_reset_starts_new_run():
  first = get_bus()
  first.register(_article())
  fresh = reset_bus(ImportMode.VIRTUAL)
  assert fresh is get_bus()
  assert fresh is not first
  assert len(fresh) == 0
  assert fresh.import_mode == ImportMode.VIRTUAL


def test_standalone_bus_defaults_to_eject():
  assert MetadataBus().import_mode == ImportMode.EJECT
