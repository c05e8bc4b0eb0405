"""
Rails-compatible word inflection.

Implements the subset of ActiveSupport's inflector that naming conventions
depend on: table names are pluralized underscored class names, association
targets are classified singular names, foreign keys are underscored owner
names, and so on. Rule order matters: the first matching rule wins.
"""

import re
from typing import Dict, List, Pattern, Tuple

IRREGULARS_PLURAL: Dict[str, str] = {
  "person": "people",
  "man": "men",
  "woman": "women",
  "child": "children",
  "sex": "sexes",
  "move": "moves",
  "zombie": "zombies",
  "octopus": "octopi",
  "virus": "viri",
  "alias": "aliases",
  "status": "statuses",
  "axis": "axes",
  "crisis": "crises",
  "testis": "testes",
  "ox": "oxen",
  "quiz": "quizzes",
}

IRREGULARS_SINGULAR: Dict[str, str] = {plural: single for single, plural in IRREGULARS_PLURAL.items()}

UNCOUNTABLES = frozenset(
  ["equipment", "information", "rice", "money", "species", "series", "fish", "sheep", "jeans", "police"]
)


def _rules(pairs: List[Tuple[str, str]]) -> List[Tuple[Pattern[str], str]]:
  return [(re.compile(pattern, re.IGNORECASE), replacement) for pattern, replacement in pairs]


SINGULARS = _rules(
  [
    (r"(ss)$", r"\1"),
    (r"(database)s$", r"\1"),
    (r"(quiz)zes$", r"\1"),
    (r"(matr)ices$", r"\1ix"),
    (r"(vert|ind)ices$", r"\1ex"),
    (r"^(ox)en", r"\1"),
    (r"(alias|status)(es)?$", r"\1"),
    (r"(octop|vir)(us|i)$", r"\1us"),
    (r"^(a)x[ie]s$", r"\1xis"),
    (r"(cris|test)(is|es)$", r"\1is"),
    (r"(shoe)s$", r"\1"),
    (r"(o)es$", r"\1"),
    (r"(bus)(es)?$", r"\1"),
    (r"^(m|l)ice$", r"\1ouse"),
    (r"(x|ch|ss|sh)es$", r"\1"),
    (r"(m)ovies$", r"\1ovie"),
    (r"(s)eries$", r"\1eries"),
    (r"([^aeiouy]|qu)ies$", r"\1y"),
    (r"([lr])ves$", r"\1f"),
    (r"(tive)s$", r"\1"),
    (r"(hive)s$", r"\1"),
    (r"([^f])ves$", r"\1fe"),
    (r"((a)naly|(b)a|(d)iagno|(p)arenthe|(p)rogno|(s)ynop|(t)he)(sis|ses)$", r"\1sis"),
    (r"(^analy)(sis|ses)$", r"\1sis"),
    (r"([ti])a$", r"\1um"),
    (r"(n)ews$", r"\1ews"),
    (r"s$", ""),
  ]
)

PLURALS = _rules(
  [
    (r"(quiz)$", r"\1zes"),
    (r"^(oxen)$", r"\1"),
    (r"^(ox)$", r"\1en"),
    (r"^(m|l)ice$", r"\1ice"),
    (r"^(m|l)ouse$", r"\1ice"),
    (r"(matr|vert|ind)(?:ix|ex)$", r"\1ices"),
    (r"(x|ch|ss|sh)$", r"\1es"),
    (r"([^aeiouy]|qu)y$", r"\1ies"),
    (r"(hive)$", r"\1s"),
    (r"(?:([^f])fe|([lr])f)$", r"\1\2ves"),
    (r"sis$", "ses"),
    (r"([ti])a$", r"\1a"),
    (r"([ti])um$", r"\1a"),
    (r"(buffal|tomat)o$", r"\1oes"),
    (r"(bu)s$", r"\1ses"),
    (r"(alias|status)$", r"\1es"),
    (r"(octop|vir)i$", r"\1i"),
    (r"(octop|vir)us$", r"\1i"),
    (r"^(ax|test)is$", r"\1es"),
    (r"s$", "s"),
    (r"$", "s"),
  ]
)


def _match_case(word: str, replacement: str) -> str:
  if word[:1].isupper():
    return replacement[:1].upper() + replacement[1:]
  return replacement


def _inflect(word: str, irregulars: Dict[str, str], rules: List[Tuple[Pattern[str], str]]) -> str:
  if not word:
    return word
  lower = word.lower()
  if lower in UNCOUNTABLES:
    return word
  if lower in irregulars:
    return _match_case(word, irregulars[lower])
  # Only the last underscore-separated segment inflects: line_item -> line_items
  head, sep, tail = word.rpartition("_")
  if sep and tail.lower() in irregulars:
    return head + sep + _match_case(tail, irregulars[tail.lower()])
  for rule, replacement in rules:
    if rule.search(word):
      return rule.sub(replacement, word, count=1)
  return word


def pluralize(word: str) -> str:
  """
  Returns the plural form of ``word``.

  Examples:
      >>> pluralize("article")
      'articles'
      >>> pluralize("person")
      'people'
  """
  return _inflect(word, IRREGULARS_PLURAL, PLURALS)


def singularize(word: str) -> str:
  """
  Returns the singular form of ``word``.

  Examples:
      >>> singularize("categories")
      'category'
  """
  return _inflect(word, IRREGULARS_SINGULAR, SINGULARS)


def underscore(word: str) -> str:
  """``AccessToken`` -> ``access_token``; ``Admin::User`` -> ``admin/user``."""
  word = word.replace("::", "/")
  word = re.sub(r"([A-Z\d]+)([A-Z][a-z])", r"\1_\2", word)
  word = re.sub(r"([a-z\d])([A-Z])", r"\1_\2", word)
  return word.replace("-", "_").lower()


def camelize(word: str, upper_first: bool = True) -> str:
  """``access_token`` -> ``AccessToken`` (or ``accessToken`` when ``upper_first`` is False)."""
  parts = [p for p in word.split("_") if p]
  if not parts:
    return word
  result = "".join(p[:1].upper() + p[1:] for p in parts)
  if word.startswith("_"):
    result = "_" + result
  if not upper_first:
    result = result[:1].lower() + result[1:]
  return result


def classify(word: str) -> str:
  """Singular class name for a table or association name: ``line_items`` -> ``LineItem``."""
  return camelize(singularize(word.split(".")[-1]))


def tableize(class_name: str) -> str:
  """Table name for a class name: ``LineItem`` -> ``line_items``."""
  return pluralize(underscore(class_name))


def is_plural(word: str) -> bool:
  """
  Heuristic plural check used when no declaration fact is available.

  A word counts as plural when singularizing changes it and pluralizing the
  singular gives it back. Uncountables are never plural.
  """
  if not word or word.lower() in UNCOUNTABLES:
    return False
  single = singularize(word)
  return single != word and pluralize(single) == word
