from collections import namedtuple

from config import CATEGORIES


DisposalAdvice = namedtuple('DisposalAdvice', ['bin_color', 'recyclable', 'notes'])

UNRECOGNIZED = DisposalAdvice(bin_color=None, recyclable=None, notes=('Category not recognized',))

DISPOSAL_GUIDE = {
    'plastik': DisposalAdvice('YELLOW', True, ('Recyclable', 'Rinse before disposal')),
    'kertas': DisposalAdvice('BLUE', True, ('Recyclable', 'Fold or flatten to save space')),
    'logam': DisposalAdvice('BLUE', True, ('Recyclable', 'Keep separate from other waste')),
    'organik': DisposalAdvice('GREEN', False, ('Can be composted', 'Breaks down naturally')),
    'kaca': DisposalAdvice('BLUE', True, ('Recyclable', 'Careful with sharp shards')),
}


def get_disposal_advice(category, categories=CATEGORIES):
    """
    Handling guidance for a predicted category

    Matching is case-insensitive ('Plastik' and 'plastik' are the same).
    Anything outside `categories`, including None, gets UNRECOGNIZED.
    """
    if not isinstance(category, str):
        return UNRECOGNIZED
    key = category.strip().lower()
    if key not in categories:
        return UNRECOGNIZED
    return DISPOSAL_GUIDE.get(key, UNRECOGNIZED)


def format_disposal_advice(category, categories=CATEGORIES):
    advice = get_disposal_advice(category, categories)
    lines = ["📌 DISPOSAL RECOMMENDATION:"]
    if advice.bin_color:
        lines.append(f"   • Bin: {advice.bin_color}")
    lines.extend(f"   • {note}" for note in advice.notes)
    return "\n".join(lines)
