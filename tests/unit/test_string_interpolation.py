"""
Unit tests for placeholder interpolation in strings.
"""
from dcstack.UTILS.string_interpolation import EnvironmentInterpolator

VALUES = {"FOO": "bar", "EMPTY": "", "PRICE": "5$"}


def lookup(name):
    return VALUES.get(name)


def test_braced_and_bare_forms():
    assert EnvironmentInterpolator.interpolate("${FOO}/$FOO", lookup) == "bar/bar"


def test_unresolved_names_are_collected():
    missing = set()
    result = EnvironmentInterpolator.interpolate("a${MISSING}b$OTHER", lookup, missing=missing)
    assert result == "ab"
    assert missing == {"MISSING", "OTHER"}


def test_keep_unresolved_leaves_placeholder():
    result = EnvironmentInterpolator.interpolate("${FOO}-${MISSING}", lookup, keep_unresolved=True)
    assert result == "bar-${MISSING}"


def test_default_and_alternative_modifiers():
    missing = set()
    assert EnvironmentInterpolator.interpolate("${MISSING:-x}", lookup, missing=missing) == "x"
    assert EnvironmentInterpolator.interpolate("${EMPTY:-x}", lookup) == "x"
    assert EnvironmentInterpolator.interpolate("${FOO:+set}", lookup) == "set"
    assert EnvironmentInterpolator.interpolate("${MISSING:+set}", lookup) == ""
    assert missing == set()


def test_escaped_dollar_is_not_substituted():
    assert EnvironmentInterpolator.interpolate("$$FOO", lookup) == "$$FOO"


def test_substituted_values_are_not_rescanned():
    values = {"A": "$B", "B": "nope"}
    assert EnvironmentInterpolator.interpolate("${A}", values.get) == "$B"


def test_escape_values_doubles_dollars():
    assert EnvironmentInterpolator.interpolate("${PRICE}", lookup, escape_values=True) == "5$$"


def test_references_in_order():
    assert EnvironmentInterpolator.references("${B} $A ${B:-x} $$C") == ["B", "A"]


def test_is_reference():
    assert EnvironmentInterpolator.is_reference("${FOO}")
    assert EnvironmentInterpolator.is_reference("$FOO")
    assert not EnvironmentInterpolator.is_reference("x${FOO}")
    assert not EnvironmentInterpolator.is_reference("$$")
