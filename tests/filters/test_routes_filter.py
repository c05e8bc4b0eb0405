"""
Tests for the routes filter.

Verifies:
1. Resources expand to the seven conventional routes and helpers, respecting `only`.
2. Nested resources prefix their paths and take the parent as a helper argument.
3. The router module imports each controller once and registers routes.
4. Resolved routes and helpers are published for views.
"""

from rails2js.core.builders import const, lvar
from rails2js.core.node import s
from rails2js.core.sexp import read_sexp
from rails2js.filters.routes import RoutesCollector, path_helper

ROUTES = """
(block (send (send (send (const nil :Rails) :application) :routes) :draw) (args)
  (begin
    (send nil :root (str "articles#index"))
    (block (send nil :resources (sym :articles)) (args)
      (send nil :resources (sym :comments) (hash (pair (sym :only) (array (sym :create) (sym :destroy))))))
    (send nil :get (str "/about") (hash (pair (sym :to) (str "pages#about")) (pair (sym :as) (sym :about))))))
"""


def _extract(name):
  return s("begin", s("send", None, "extract_id", lvar(name)))


def _helper(out, name):
  for stmt in out.children:
    if stmt.kind == "export" and stmt.children[0].kind == "def" and stmt.children[0].children[0] == name:
      return stmt.children[0]
  raise AssertionError(f"no helper {name}")


def test_collector_expands_resources():
  collected = RoutesCollector().collect(read_sexp(ROUTES).children[2])
  table = [(r.verb, r.path, r.controller, r.action) for r in collected.routes]
  assert table == [
    ("GET", "/", "ArticlesController", "index"),
    ("GET", "/articles", "ArticlesController", "index"),
    ("GET", "/articles/new", "ArticlesController", "$new"),
    ("POST", "/articles", "ArticlesController", "create"),
    ("GET", "/articles/:id", "ArticlesController", "show"),
    ("GET", "/articles/:id/edit", "ArticlesController", "edit"),
    ("PATCH", "/articles/:id", "ArticlesController", "update"),
    ("DELETE", "/articles/:id", "ArticlesController", "destroy"),
    ("POST", "/articles/:article_id/comments", "CommentsController", "create"),
    ("DELETE", "/articles/:article_id/comments/:id", "CommentsController", "destroy"),
    ("GET", "/about", "PagesController", "about"),
  ]
  assert collected.helpers["comment_path"] == ("/articles/:article_id/comments/:id", ["article", "comment"])
  assert "new_comment_path" not in collected.helpers
  assert collected.root == "/articles"


def test_singular_resource():
  source = "(begin (send nil :resource (sym :profile) (hash (pair (sym :only) (array (sym :show) (sym :edit))))))"
  collected = RoutesCollector().collect(read_sexp(source))
  assert [(r.verb, r.path, r.controller) for r in collected.routes] == [
    ("GET", "/profile", "ProfilesController"),
    ("GET", "/profile/edit", "ProfilesController"),
  ]
  assert set(collected.helpers) == {"profile_path", "edit_profile_path"}


def test_member_and_collection_routes():
  source = """
  (block (send nil :resources (sym :articles) (hash (pair (sym :only) (array (sym :index))))) (args)
    (begin
      (block (send nil :member) (args) (send nil :post (sym :publish)))
      (block (send nil :collection) (args) (send nil :get (sym :archived)))))
  """
  collected = RoutesCollector().collect(read_sexp(source))
  assert collected.helpers["publish_article_path"] == ("/articles/:id/publish", ["article"])
  assert collected.helpers["archived_articles_path"] == ("/articles/archived", [])
  assert ("post", "/articles/:id/publish", "ArticlesController", "publish") in collected.verb_routes


def test_path_helper_interpolates_ids():
  helper = path_helper("comment_path", "/articles/:article_id/comments/:id", ["article", "comment"])
  expected_body = s("dstr", s("str", "/articles/"), _extract("article"), s("str", "/comments/"), _extract("comment"))
  assert helper == s(
    "export",
    s("def", "comment_path", s("args", s("arg", "article"), s("arg", "comment")), s("autoreturn", expected_body)),
  )


def test_static_path_helper_returns_string():
  helper = path_helper("articles_path", "/articles", [])
  assert helper.children[0].children[2] == s("autoreturn", s("str", "/articles"))


def test_router_module(run_filter):
  out = run_filter("routes", ROUTES, path="config/routes.rb")
  assert out.kind == "begin"
  assert out.children[0] == s("import", "../lib/rails.js", "Router", "Application", "setupFormHandlers")
  controller_imports = [c for c in out.children if c.kind == "import" and c.children[0].startswith("../app/controllers/")]
  assert controller_imports == [
    s("import", "../app/controllers/articles_controller.js", "ArticlesController"),
    s("import", "../app/controllers/comments_controller.js", "CommentsController"),
    s("import", "../app/controllers/pages_controller.js", "PagesController"),
  ]
  assert _helper(out, "article_path").children[2] == s("autoreturn", s("dstr", s("str", "/articles/"), _extract("article")))

  nested = s(
    "hash",
    s("pair", s("sym", "name"), s("str", "comments")),
    s("pair", s("sym", "controller"), const("CommentsController")),
    s("pair", s("sym", "only"), s("array", s("str", "create"), s("str", "destroy"))),
  )
  resources = s(
    "send",
    const("Router"),
    "resources",
    s("str", "articles"),
    const("ArticlesController"),
    s("hash", s("pair", s("sym", "nested"), s("array", nested))),
  )
  assert resources in out.children
  assert s("send", const("Router"), "root", s("str", "/articles")) in out.children
  assert s("send", const("Router"), "get", s("str", "/about"), const("PagesController"), s("str", "about")) in out.children
  assert out.children[-1] == s("export", s("array", const("Application")))


def test_form_handler_config(run_filter):
  out = run_filter("routes", ROUTES, path="config/routes.rb")
  handlers = next(c for c in out.children if c.kind == "send" and c.children[1] == "setupFormHandlers")
  configs = handlers.children[2].children
  assert configs[0] == s(
    "hash",
    s("pair", s("sym", "resource"), s("str", "articles")),
    s("pair", s("sym", "confirmDelete"), s("str", "Are you sure you want to delete this article?")),
  )
  assert configs[1] == s(
    "hash",
    s("pair", s("sym", "resource"), s("str", "comments")),
    s("pair", s("sym", "parent"), s("str", "articles")),
    s("pair", s("sym", "confirmDelete"), s("str", "Delete this comment?")),
  )


def test_virtual_specifiers(run_filter):
  out = run_filter("routes", ROUTES, import_mode="virtual")
  assert s("import", "juntos:rails", "Router", "Application", "setupFormHandlers") in out.children
  assert s("import", "juntos:controllers/pages_controller", "PagesController") in out.children


def test_routes_facts_published(run_filter, bus):
  run_filter("routes", ROUTES, path="config/routes.rb")
  facts = bus.lookup("routes")
  assert facts.helpers["article_path"] == "/articles/:id"
  assert facts.helpers["about_path"] == "/about"
  assert facts.file_path == "config/routes.rb"
  assert any(r.helper == "new_article_path" and r.action == "$new" for r in facts.routes)
