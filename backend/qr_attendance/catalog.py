"""Academic levels and the subjects taught at each, shared by registration and session creation."""

ACADEMIC_LEVELS = ["First Year", "Second Year", "Third Year", "Fourth Year"]

SUBJECTS_BY_LEVEL = {
    "First Year": [
        "Western Rules & Solfege 1",
        "Western Rules & Solfege 2",
        "Rhythmic Movement 1",
    ],
    "Second Year": [
        "Western Rules & Solfege 3",
        "Western Rules & Solfege 4",
        "Hymn Singing",
        "Rhythmic Movement 2",
    ],
    "Third Year": [
        "Western Rules & Solfege 5",
        "Improvisation 1",
    ],
    "Fourth Year": [
        "Western Rules & Solfege 6",
        "Improvisation 2",
    ],
}


def catalog():
    return [
        {'academic_level': level, 'subjects': SUBJECTS_BY_LEVEL[level]}
        for level in ACADEMIC_LEVELS
    ]
