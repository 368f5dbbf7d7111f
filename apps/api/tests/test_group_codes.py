"""
Group invite code generator tests.
"""
import pytest

from services.group_codes import (
    GROUP_CODE_ALPHABET,
    GROUP_CODE_LENGTH,
    GroupCodeExhaustedError,
    generate_group_code,
    generate_unique_group_code,
    is_valid_group_code,
    normalize_group_code,
)


class TestGenerateGroupCode:
    def test_alphabet_excludes_look_alikes(self):
        assert len(GROUP_CODE_ALPHABET) == 32
        for ch in "01IO":
            assert ch not in GROUP_CODE_ALPHABET

    def test_codes_are_six_alphabet_characters(self):
        for _ in range(500):
            code = generate_group_code()
            assert len(code) == GROUP_CODE_LENGTH
            assert set(code) <= set(GROUP_CODE_ALPHABET)
            assert is_valid_group_code(code)

    def test_codes_vary(self):
        assert len({generate_group_code() for _ in range(50)}) > 1


class TestNormalize:
    @pytest.mark.parametrize("raw,expected", [
        ("abc234", "ABC234"),
        ("  xyz789 ", "XYZ789"),
        (None, ""),
        ("", ""),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_group_code(raw) == expected

    def test_invalid_codes(self):
        assert not is_valid_group_code("ABC23")
        assert not is_valid_group_code("ABCD10")
        assert not is_valid_group_code("abcdef")


class TestGenerateUnique:
    def test_skips_taken_codes(self):
        candidates = iter(["AAAAAA", "BBBBBB", "CCCCCC"])
        taken = {"AAAAAA", "BBBBBB"}
        code = generate_unique_group_code(lambda c: c in taken, max_attempts=10, generator=lambda: next(candidates))
        assert code == "CCCCCC"

    def test_gives_up_after_max_attempts(self):
        calls = []

        def generator():
            calls.append(1)
            return "AAAAAA"

        with pytest.raises(GroupCodeExhaustedError):
            generate_unique_group_code(lambda c: True, max_attempts=10, generator=generator)
        assert len(calls) == 10
