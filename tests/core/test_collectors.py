"""
Tests for the metadata collection pass.

Verifies:
1. Model declarations become fact records in declaration order.
2. Enum declaration forms (array, hash, prefix options, index_by).
3. Controller guards, including skip_before_action narrowing.
4. Collection never rewrites the body it scans.
"""

from rails2js.core.collectors import (
  collect_controller,
  collect_model,
  controller_facts,
  controller_model,
  enum_values,
  hash_options,
  model_facts,
  name_list,
  table_name_for,
)
from rails2js.core.context import UnitContext
from rails2js.core.node import s
from rails2js.core.sexp import read_sexp
from rails2js.enums import AssociationKind, UnitKind

ARTICLE_BODY = """
(begin
  (send nil :has_many (sym :comments) (hash (pair (sym :dependent) (sym :destroy))))
  (send nil :belongs_to (sym :author) (hash (pair (sym :class_name) (str "Admin::User"))))
  (send nil :validates (sym :title) (sym :body) (hash (pair (sym :presence) (true))))
  (send nil :scope (sym :published) (block (lambda) (args) (send nil :where (hash (pair (sym :published) (true))))))
  (send nil :scope (sym :recent) (block (lambda) (args (arg :n)) (send nil :limit (lvar :n))))
  (send nil :enum (sym :status) (array (sym :draft) (sym :published)))
  (send nil :after_create (sym :notify))
  (block (send nil :before_save) (args) (send (self) :touch))
  (send nil :has_one_attached (sym :cover))
  (send nil :accepts_nested_attributes_for (sym :comments) (hash (pair (sym :allow_destroy) (true))))
  (def :notify (args) nil)
  (send nil :private)
  (def :helper (args) nil))
"""


def _unit(name="Article", kind=UnitKind.MODEL):
  return UnitContext(name=name, kind=kind, file_path="app/models/article.rb")


def test_model_collection_returns_body_unchanged():
  body = read_sexp(ARTICLE_BODY)
  assert collect_model(body, _unit()) is body


def test_model_associations():
  unit = _unit()
  collect_model(read_sexp(ARTICLE_BODY), unit)
  comments, author = unit.associations
  assert comments.kind == AssociationKind.HAS_MANY
  assert comments.options == {"dependent": "destroy"}
  assert author.kind == AssociationKind.BELONGS_TO
  assert author.target == "User"
  assert author.foreign_key == "author_id"


def test_polymorphic_belongs_to():
  unit = _unit("Comment")
  collect_model(read_sexp("(send nil :belongs_to (sym :commentable) (hash (pair (sym :polymorphic) (true))))"), unit)
  (record,) = unit.associations
  assert record.kind == AssociationKind.POLYMORPHIC
  assert "polymorphic" not in record.options


def test_model_validations_scopes_callbacks():
  unit = _unit()
  collect_model(read_sexp(ARTICLE_BODY), unit)

  assert [v.field for v in unit.validations] == ["title", "body"]
  assert unit.validations[0].rules == {"presence": True}

  published, recent = unit.scopes
  assert published.is_property
  assert published.body == read_sexp("(send nil :where (hash (pair (sym :published) (true))))")
  assert recent.params == ["n"]

  named, block = unit.callbacks
  assert (named.phase, named.method) == ("after_create", "notify")
  assert block.phase == "before_save"
  assert block.body == read_sexp("(send (self) :touch)")


def test_model_methods_and_extras():
  unit = _unit()
  collect_model(read_sexp(ARTICLE_BODY), unit)
  assert list(unit.public_methods) == ["notify"]
  assert list(unit.private_methods) == ["helper"]
  assert unit.defined_methods == {"notify", "helper"}
  assert unit.attachments == {"cover": "has_one_attached"}
  assert unit.nested_attributes == ["comments"]
  assert unit.extras["nested_options"] == {"comments": {"allow_destroy": True}}


def test_enum_array_form():
  unit = _unit()
  collect_model(read_sexp(ARTICLE_BODY), unit)
  (record,) = unit.enums
  assert record.field == "status"
  assert record.values == {"draft": 0, "published": 1}
  assert record.prefix is None


def test_enum_hash_form_with_prefix():
  source = """
  (send nil :enum (hash
    (pair (sym :status) (hash (pair (sym :draft) (int 0)) (pair (sym :archived) (int 5))))
    (pair (sym :_prefix) (true))
    (pair (sym :_scopes) (false))))
  """
  unit = _unit()
  collect_model(read_sexp(source), unit)
  (record,) = unit.enums
  assert record.values == {"draft": 0, "archived": 5}
  assert record.prefix == "status"
  assert record.scopes is False


def test_enum_values_index_by():
  node = read_sexp('(send (array (str "low") (str "high")) :index_by (block_pass (sym :itself)))')
  assert enum_values(node) == {"low": "low", "high": "high"}
  assert enum_values(s("int", 1)) is None


def test_model_facts_keep_only_named_callbacks():
  unit = _unit()
  collect_model(read_sexp(ARTICLE_BODY), unit)
  facts = model_facts(unit, "articles")
  assert facts.table_name == "articles"
  assert facts.file_path == "app/models/article.rb"
  assert [c.method for c in facts.callbacks] == ["notify"]
  assert facts.methods == ["helper", "notify"]


def test_table_names():
  assert table_name_for(read_sexp("(const nil :Article)")) == "articles"
  assert table_name_for(read_sexp("(const (const nil :Card) :NotNow)")) == "card_not_nows"


CONTROLLER_BODY = """
(begin
  (send nil :before_action (sym :authenticate))
  (send nil :before_action (sym :set_article) (hash (pair (sym :only) (array (sym :show) (sym :edit) (sym :update)))))
  (send nil :skip_before_action (sym :authenticate) (hash (pair (sym :only) (array (sym :index)))))
  (send nil :skip_before_action (sym :set_article) (hash (pair (sym :only) (sym :edit))))
  (def :index (args) nil)
  (def :show (args) nil)
  (send nil :private)
  (def :set_article (args) nil))
"""


def test_controller_guards_and_skips():
  unit = _unit("ArticlesController", UnitKind.CONTROLLER)
  body = read_sexp(CONTROLLER_BODY)
  assert collect_controller(body, unit) is body

  auth, set_article = unit.guards
  assert auth.method == "authenticate"
  assert auth.except_ == ["index"]
  assert not auth.admits("index")
  assert set_article.only == ["show", "update"]


def test_skip_without_options_removes_guard():
  unit = _unit("ArticlesController", UnitKind.CONTROLLER)
  collect_controller(
    read_sexp("(begin (send nil :before_action (sym :auth)) (send nil :skip_before_action (sym :auth)))"), unit
  )
  assert unit.guards == []


def test_controller_facts():
  unit = _unit("ArticlesController", UnitKind.CONTROLLER)
  collect_controller(read_sexp(CONTROLLER_BODY), unit)
  facts = controller_facts(unit, controller_model(unit.name))
  assert facts.model == "Article"
  assert facts.actions == ["index", "show"]
  assert len(facts.guards) == 2


def test_controller_model_names():
  assert controller_model("ArticlesController") == "Article"
  assert controller_model("Admin::PeopleController") == "Person"


def test_option_helpers():
  options = read_sexp('(hash (pair (sym :only) (array (sym :a) (sym :b))) (pair (sym :x) (hash (pair (sym :y) (int 1)))))')
  assert hash_options(options) == {"only": ["a", "b"], "x": {"y": 1}}
  assert name_list(read_sexp("(sym :show)")) == ["show"]
  assert name_list(read_sexp('(array (sym :a) (str "b"))')) == ["a", "b"]
  assert name_list(None) == []
