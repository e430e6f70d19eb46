# Wizard steps, in the order the client walks through them
WIZARD_STEPS = [
    {'index': 0, 'key': 'grunddaten', 'title': 'Grunddaten'},
    {'index': 1, 'key': 'produktauswahl', 'title': 'Produktauswahl'},
    {'index': 2, 'key': 'spezifikationen', 'title': 'Spezifikationen'},
    {'index': 3, 'key': 'weitere_produkte', 'title': 'Weitere Produkte'},
    {'index': 4, 'key': 'abschluss', 'title': 'Bilder & Abschluss'},
]

# Customer data collected on the first step
GRUNDDATEN_FIELDS = {
    'datum': {'label': 'Datum', 'required': True},
    'aufmasser': {'label': 'Aufmaßer', 'required': True},
    'kundeVorname': {'label': 'Kunde Vorname', 'required': True},
    'kundeNachname': {'label': 'Kunde Nachname', 'required': True},
    'kundenlokation': {'label': 'Kundenlokation', 'required': True},
    'kundeEmail': {'label': 'Kunde E-Mail', 'required': False},
}

PRODUKTAUSWAHL_LABELS = {
    'category': 'Kategorie',
    'productType': 'Produkttyp',
    'model': 'Modell',
}

# Minimum number of photos before a form can be finished
MIN_BILDER = 2

# Sections of the generated PDF, in drawing order
PDF_STRUCTURE = [
    {'key': 'grunddaten', 'title': 'GRUNDDATEN'},
    {'key': 'produktauswahl', 'title': 'PRODUKTAUSWAHL'},
    {'key': 'spezifikationen', 'title': 'SPEZIFIKATIONEN'},
    {'key': 'unterbauelemente', 'title': 'UNTERBAUELEMENTE'},
    {'key': 'markise', 'title': 'MARKISE'},
    {'key': 'weitere_produkte', 'title': 'WEITERE PRODUKTE'},
    {'key': 'bemerkungen', 'title': 'BEMERKUNGEN'},
    {'key': 'anhaenge', 'title': 'BILDER & ANHÄNGE'},
]

# Keys stored inside specifications that are rendered as their own sections
NESTED_SPEC_KEYS = ['unterbauelementeData', 'markiseData', 'markiseBemerkungen']
