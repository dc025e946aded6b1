import string

from shortlink.utils import ALPHABET, generate_alias


def test_alphabet_is_62_alphanumerics():
    assert len(ALPHABET) == 62
    assert set(ALPHABET) == set(string.ascii_letters + string.digits)


def test_generate_alias_default_length_and_charset():
    for _ in range(200):
        alias = generate_alias()
        assert len(alias) == 6
        assert set(alias) <= set(ALPHABET)


def test_generate_alias_custom_length():
    assert len(generate_alias(10)) == 10


def test_generate_alias_varies():
    # Two calls in the same instant must not produce the same alias.
    aliases = {generate_alias() for _ in range(50)}
    assert len(aliases) > 45
