import random
import pytest
import string
from dcstack.PARSERS.compose_parser import ComposeParseError, ComposeParser
from dcstack.PARSERS.env_parser import EnvParser
from dcstack.UTILS.field_shapes import command_to_canonical, env_to_canonical, labels_to_canonical
from dcstack.UTILS.port_finder import container_port, extract_port_number, split_port_mapping
from dcstack.UTILS.string_interpolation import EnvironmentInterpolator

SEED = 1337


def random_string(rng, length, alphabet=string.printable):
    return ''.join(rng.choice(alphabet) for _ in range(length))


def test_fuzz_compose_parser():
    rng = random.Random(SEED)
    parser = ComposeParser()
    for _ in range(200):
        content = random_string(rng, rng.randint(0, 500))
        try:
            parser.parse_from_string(content)
        except ComposeParseError:
            # Random junk must fail with the parser's own error only
            pass


def test_fuzz_env_parser():
    rng = random.Random(SEED)
    for _ in range(200):
        content = random_string(rng, rng.randint(0, 500))
        values = EnvParser.parse_from_string(content)
        assert all(isinstance(value, str) for value in values.values())


def test_fuzz_interpolation():
    rng = random.Random(SEED)
    alphabet = "${}:-+_AZaz09 $$"
    for _ in range(500):
        template = random_string(rng, rng.randint(0, 40), alphabet)
        result = EnvironmentInterpolator.interpolate(template, lambda name: "v", keep_unresolved=True)
        assert isinstance(result, str)
        EnvironmentInterpolator.references(template)


def test_fuzz_port_mappings():
    rng = random.Random(SEED)
    alphabet = "0123456789:/-[]. tcpud"
    for _ in range(500):
        mapping = random_string(rng, rng.randint(0, 30), alphabet)
        split_port_mapping(mapping)
        assert extract_port_number(mapping) >= 0
        assert container_port(mapping) >= 0


def test_fuzz_field_shapes():
    rng = random.Random(SEED)
    for _ in range(200):
        text = random_string(rng, rng.randint(0, 60))
        command_to_canonical(text)
        env_to_canonical([text, text])
        labels_to_canonical([text])


def test_edge_cases_parsers():
    compose_parser = ComposeParser()

    # Empty string
    assert compose_parser.parse_from_string("").services == {}

    # Only whitespace and comments
    assert compose_parser.parse_from_string("   \n  \n# nothing\n").services == {}

    # Tabs cannot indent YAML
    with pytest.raises(ComposeParseError):
        compose_parser.parse_from_string("   \n\t  \n# nothing\n")

    assert EnvParser.parse_from_string("   \n\t  ") == {}
