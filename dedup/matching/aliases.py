"""
Known abbreviations and nicknames that edit distance alone misses.

"St. Mary's" and "Saint Mary's" are 3 edits apart; "Bill" and "William"
share almost nothing. These recognizers catch such pairs.
"""

import re

from dedup.matching.distance import levenshtein

# (full form, abbreviated form); abbreviations may carry a trailing period
ABBREVIATION_PATTERNS = [
    (re.compile(r"\bsaint\b", re.IGNORECASE), re.compile(r"\bst\b\.?", re.IGNORECASE)),
    (re.compile(r"\bmount\b", re.IGNORECASE), re.compile(r"\bmt\b\.?", re.IGNORECASE)),
    (re.compile(r"\buniversity\b", re.IGNORECASE), re.compile(r"\bu\b\.?", re.IGNORECASE)),
    (re.compile(r"\bnorth\b", re.IGNORECASE), re.compile(r"\bn\b\.?", re.IGNORECASE)),
    (re.compile(r"\bsouth\b", re.IGNORECASE), re.compile(r"\bs\b\.?", re.IGNORECASE)),
    (re.compile(r"\beast\b", re.IGNORECASE), re.compile(r"\be\b\.?", re.IGNORECASE)),
    (re.compile(r"\bwest\b", re.IGNORECASE), re.compile(r"\bw\b\.?", re.IGNORECASE)),
]

PLACEHOLDER = "§"

NICKNAMES = {
    "william": {"will", "bill", "billy", "willy"},
    "robert": {"rob", "bob", "bobby", "robbie"},
    "richard": {"rich", "rick", "dick", "ricky"},
    "james": {"jim", "jimmy", "jamie"},
    "john": {"jack", "johnny", "jon"},
    "michael": {"mike", "mikey", "mick"},
    "david": {"dave", "davey"},
    "joseph": {"joe", "joey"},
    "thomas": {"tom", "tommy"},
    "christopher": {"chris", "topher"},
    "daniel": {"dan", "danny"},
    "matthew": {"matt", "matty"},
    "anthony": {"tony", "ant"},
    "steven": {"steve", "stevie"},
    "stephen": {"steve", "stevie"},
    "edward": {"ed", "eddie", "ted", "teddy"},
    "charles": {"charlie", "chuck"},
    "jennifer": {"jen", "jenny"},
    "elizabeth": {"liz", "beth", "lizzy", "betty"},
    "katherine": {"kate", "katie", "kathy", "kat"},
    "catherine": {"kate", "katie", "cathy", "cat"},
    "margaret": {"maggie", "meg", "peggy"},
    "patricia": {"pat", "patty", "trish"},
    "jessica": {"jess", "jessie"},
    "ashley": {"ash"},
    "samantha": {"sam", "sammy"},
    "amanda": {"mandy", "amy"},
    "rebecca": {"becca", "becky"},
    "christina": {"chris", "tina", "christy"},
    "christine": {"chris", "tina", "christy"},
}


def _substitute(name: str, full: re.Pattern, abbrev: re.Pattern) -> str:
    name = full.sub(PLACEHOLDER, name)
    name = abbrev.sub(PLACEHOLDER, name)
    return name.lower().strip()


def are_abbreviation_variants(name1: str, name2: str) -> bool:
    """
    Check whether two names differ only by a known abbreviation.

    Each (full, abbreviated) pair is tried on its own: both forms are
    replaced by a placeholder in both names and the results compared.
    """
    for full, abbrev in ABBREVIATION_PATTERNS:
        if _substitute(name1, full, abbrev) == _substitute(name2, full, abbrev):
            return True
    return False


def are_nicknames(name1: str, name2: str) -> bool:
    """Both first names belong to the same canonical name's group."""
    name1 = name1.lower().strip()
    name2 = name2.lower().strip()
    for canonical, variants in NICKNAMES.items():
        group = variants | {canonical}
        if name1 in group and name2 in group:
            return True
    return False


def is_initial_of(name1: str, name2: str) -> bool:
    """
    "J" / "J." vs "John": same first letter and one side is a lone initial.
    """
    name1 = name1.lower().strip()
    name2 = name2.lower().strip()
    if not name1 or not name2 or name1[0] != name2[0]:
        return False

    def is_initial(name: str) -> bool:
        return len(name.rstrip(".")) == 1

    return is_initial(name1) or is_initial(name2)


def within_edit_distance(name1: str, name2: str, limit: int) -> bool:
    return levenshtein(name1, name2) <= limit


# Informal school names seen on import sheets
SCHOOL_NICKNAMES = {
    "mizzou": "university of missouri",
    "pitt": "university of pittsburgh",
    "penn state": "pennsylvania state university",
    "osu": "ohio state university",
    "usc": "university of southern california",
    "ucla": "university of california, los angeles",
    "unc": "university of north carolina",
    "lsu": "louisiana state university",
    "ole miss": "university of mississippi",
    "umass": "university of massachusetts",
}


def expand_school_nickname(name: str) -> str:
    """Full name for a known informal school name, else the name unchanged."""
    return SCHOOL_NICKNAMES.get(name.lower().strip(), name)
