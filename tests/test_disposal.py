import pytest

from config import CATEGORIES
from disposal import DISPOSAL_GUIDE, UNRECOGNIZED, format_disposal_advice, get_disposal_advice


def test_every_category_has_guidance():
    assert set(DISPOSAL_GUIDE) == set(CATEGORIES)


@pytest.mark.parametrize('category, bin_color, recyclable', [
    ('plastik', 'YELLOW', True),
    ('Kertas', 'BLUE', True),
    ('LOGAM', 'BLUE', True),
    ('Organik', 'GREEN', False),
    (' kaca ', 'BLUE', True),
])
def test_known_categories(category, bin_color, recyclable):
    advice = get_disposal_advice(category)

    assert advice.bin_color == bin_color
    assert advice.recyclable is recyclable


@pytest.mark.parametrize('category', ['Styrofoam', '', None, 42])
def test_unrecognized_category_never_raises(category):
    assert get_disposal_advice(category) is UNRECOGNIZED


def test_only_injected_categories_are_recognized():
    assert get_disposal_advice('Kaca', categories=('plastik',)) is UNRECOGNIZED
    assert get_disposal_advice('Plastik', categories=('plastik',)).bin_color == 'YELLOW'


def test_formatted_advice():
    assert 'Bin: GREEN' in format_disposal_advice('Organik')
    assert 'Category not recognized' in format_disposal_advice('Styrofoam')
