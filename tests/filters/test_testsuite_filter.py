"""
Tests for the test-suite filter.

Verifies:
1. Test classes become `describe` blocks with async `it` cases and lifecycle hooks.
2. Setup instance variables get suite-scope declarations.
3. Assertions lower to `expect` matchers with await coloring applied.
4. Integration requests call controller actions directly.
5. Imports cover the framework names, models, controllers, helpers and fixtures used.
"""

from conftest import contains

from rails2js.core.builders import call, const, lvar, prop
from rails2js.core.metadata import EnumRecord, ModelFacts, RouteRecord, RoutesFacts
from rails2js.core.node import s
from rails2js.core.sexp import read_sexp

MODEL_TEST = """
(class (const nil :ArticleTest) (const (const nil :ActiveSupport) :TestCase)
  (begin
    (block (send nil :setup) (args) (ivasgn :@article (send nil :articles (sym :one))))
    (block (send nil :test (str "validates title")) (args)
      (begin
        (send (ivar :@article) :title= (str ""))
        (send nil :assert_not (send (ivar :@article) :valid?))
        (send nil :assert_equal (int 1) (send (const nil :Article) :count))))))
"""


def _integration(*statements):
  body = "(begin " + " ".join(statements) + ")" if len(statements) > 1 else statements[0]
  return f"""
  (class (const nil :ArticlesControllerTest) (const (const nil :ActionDispatch) :IntegrationTest)
    (block (send nil :test (str "request")) (args) {body}))
  """


def _describe(out):
  return out.children[-1] if out.kind == "begin" else out


def _cases(describe):
  body = describe.children[2]
  statements = list(body.children) if body.kind == "begin" else [body]
  return [c for c in statements if c.kind == "async_block" and c.children[0].children[1] == "it"]


def _case_body(out, index=0):
  return _cases(_describe(out))[index].children[2]


def test_class_becomes_describe(run_filter):
  out = run_filter("testsuite", MODEL_TEST, path="test/models/article_test.rb")
  describe = _describe(out)
  assert describe.children[0] == s("send", None, "describe", s("str", "Article"))
  members = list(describe.children[2].children)
  assert members[0] == s("lvasgn", "article")
  hook = members[1]
  assert hook.kind == "async_block"
  assert hook.children[0] == s("send", None, "beforeEach")
  assert hook.children[2] == read_sexp('(lvasgn :article (send nil :articles (str "one")))')
  assert members[2].children[0] == s("send", None, "it", s("str", "validates title"))


def test_assertions_become_matchers(run_filter):
  body = _case_body(run_filter("testsuite", MODEL_TEST, path="test/models/article_test.rb"))
  assert body == read_sexp(
    """
    (begin
      (send (lvar :article) :title= (str ""))
      (send! (send nil :expect (await! (lvar :article) :valid?)) :toBeFalsy)
      (send (send nil :expect (await! (const nil :Article) :count)) :toBe (int 1)))
    """
  )


def test_imports(run_filter):
  out = run_filter("testsuite", MODEL_TEST, path="test/models/article_test.rb")
  assert list(out.children[:-1]) == [
    s("import", "vitest", "describe", "it", "expect", "beforeEach"),
    s("import", "../../app/models/article.js", "Article"),
    s("import", "../fixtures.js", "articles"),
  ]


def test_test_methods_become_cases(run_filter):
  source = """
  (class (const nil :ArticleTest) (const (const nil :ActiveSupport) :TestCase)
    (def :test_has_a_title (args) (send nil :assert (true))))
  """
  out = run_filter("testsuite", source, path="test/models/article_test.rb")
  case = _cases(_describe(out))[0]
  assert case.children[0] == s("send", None, "it", s("str", "has a title"))
  assert case.children[2] == call(s("send", None, "expect", s("true")), "toBeTruthy")


def test_enum_predicates_are_properties(run_filter, bus):
  status = EnumRecord(field="status", values={"draft": 0, "published": 1})
  bus.register(ModelFacts(name="Article", table_name="articles", enums=[status]))
  source = """
  (class (const nil :ArticleTest) (const (const nil :ActiveSupport) :TestCase)
    (block (send nil :test (str "publishes")) (args)
      (send nil :assert (send (lvar :article) :published?))))
  """
  body = _case_body(run_filter("testsuite", source, path="test/models/article_test.rb"))
  assert body == call(s("send", None, "expect", prop(lvar("article"), "is_published")), "toBeTruthy")


def test_statement_calls_are_awaited(run_filter):
  source = """
  (class (const nil :ArticleTest) (const (const nil :ActiveSupport) :TestCase)
    (block (send nil :test (str "closes")) (args)
      (begin
        (send (lvar :card) :close)
        (send (lvar :card) :name= (str "x")))))
  """
  body = _case_body(run_filter("testsuite", source, path="test/models/article_test.rb"))
  assert body.children[0] == read_sexp("(await! (lvar :card) :close)")
  assert body.children[1] == read_sexp('(send (lvar :card) :name= (str "x"))')


def test_assert_raises_rejects(run_filter):
  source = """
  (class (const nil :ArticleTest) (const (const nil :ActiveSupport) :TestCase)
    (block (send nil :test (str "raises")) (args)
      (block (send nil :assert_raises) (args) (send (lvar :article) :publish))))
  """
  body = _case_body(run_filter("testsuite", source, path="test/models/article_test.rb"))
  assert body.kind == "send" and body.children[1] == "await"
  check = body.children[2]
  assert check.children[1] == "toThrow"
  rejects = check.children[0]
  assert rejects.children[1] == "rejects"
  fn = rejects.children[0].children[2]
  assert fn.kind == "async_block"
  assert fn.children[2] == read_sexp("(await! (lvar :article) :publish)")


def test_assert_difference(run_filter):
  source = """
  (class (const nil :ArticleTest) (const (const nil :ActiveSupport) :TestCase)
    (block (send nil :test (str "counts")) (args)
      (block (send nil :assert_difference (str "Article.count")) (args)
        (send (const nil :Article) :create! (hash (pair (sym :title) (str "T")))))))
  """
  body = _case_body(run_filter("testsuite", source, path="test/models/article_test.rb"))
  count = read_sexp("(await! (const nil :Article) :count)")
  assert body.children[0] == s("lvasgn", "countBefore", count)
  assert body.children[-2] == s("lvasgn", "countAfter", count)
  delta = s("send", lvar("countAfter"), "-", lvar("countBefore"))
  assert body.children[-1] == s("send", s("send", None, "expect", delta), "toBe", s("int", 1))
  assert contains(body, lambda n: n == read_sexp('(await! (const nil :Article) :create! (hash (pair (sym :title) (str "T"))))'))


def test_request_without_routes_guesses_target(run_filter):
  source = _integration("(send nil :get (send nil :articles_url))", "(send nil :assert_response (sym :success))")
  out = run_filter("testsuite", source, path="test/controllers/articles_controller_test.rb")
  body = _case_body(out)
  invoke = call(const("ArticlesController"), "index", call(None, "context"))
  assert body.children[0] == s("lvasgn", "response", s("send", None, "await", invoke))
  assert body.children[1] == call(s("send", None, "expect", prop(lvar("response"), "redirect")), "toBeUndefined")
  assert s("import", "../../app/controllers/articles_controller.js", "ArticlesController") in out.children
  assert s("import", "../lib/test_helpers.js", "context") in out.children


def test_request_resolved_from_routes(run_filter, bus):
  route = RouteRecord(verb="POST", path="/articles", controller="ArticlesController", action="create", helper="articles_path")
  bus.register(RoutesFacts(name="routes", routes=[route]))
  source = _integration(
    "(send nil :post (send nil :articles_url) (hash (pair (sym :params) (hash (pair (sym :title) (str \"T\"))))))"
  )
  body = _case_body(run_filter("testsuite", source, path="test/controllers/articles_controller_test.rb"))
  params = read_sexp('(hash (pair (sym :title) (str "T")))')
  invoke = call(const("ArticlesController"), "create", call(None, "context"), params)
  assert body == s("lvasgn", "response", s("send", None, "await", invoke))


def test_member_request_passes_record_id(run_filter):
  source = _integration("(send nil :delete (send nil :article_url (ivar :@article)))")
  body = _case_body(run_filter("testsuite", source, path="test/controllers/articles_controller_test.rb"))
  invoke = call(const("ArticlesController"), "destroy", call(None, "context"), prop(lvar("article"), "id"))
  assert body == s("lvasgn", "response", s("send", None, "await", invoke))


def test_redirect_assertion_uses_path_helper(run_filter):
  source = _integration("(send nil :assert_redirected_to (send nil :articles_url))")
  out = run_filter("testsuite", source, path="test/controllers/articles_controller_test.rb")
  body = _case_body(out)
  redirect = call(None, "String", prop(lvar("response"), "redirect"))
  assert body == s("send", s("send", None, "expect", redirect), "toBe", call(None, "String", call(None, "articles_path")))
  assert s("import", "../../config/routes.js", "articles_path") in out.children


def test_spec_style_describe(run_filter):
  source = """
  (block (send nil :describe (const nil :Article)) (args)
    (block (send nil :it (str "works")) (args) (send nil :assert (true))))
  """
  out = run_filter("testsuite", source, path="test/models/article_spec.rb")
  describe = _describe(out)
  assert describe.children[0] == s("send", None, "describe", s("str", "Article"))
  assert _cases(describe)[0].children[0] == s("send", None, "it", s("str", "works"))


def test_test_helper_require_is_dropped(run_filter):
  source = f"(begin (send nil :require (str \"test_helper\")) {MODEL_TEST})"
  out = run_filter("testsuite", source, path="test/models/article_test.rb")
  assert not contains(out, lambda n: n.kind == "send" and n.children[1] == "require")
