# Product catalog: category -> product type -> {models, modelColors, fields}
# Field dicts follow the FieldConfig shape consumed by services/catalog.py

MONTAGETEAM_FIELD = {'name': 'montageteam', 'label': 'Montageteam', 'type': 'radio', 'options': ['SENOL', 'APO'], 'required': True}

EINDECKUNG_OPTIONS = ['8MM KLAR', '8MM MILCH', '10MM KLAR', '10MM MILCH', '16MM PCS KLAR', '16MM PCS MILCH']

STANDARD_COLORS = ['RAL 7016 ANTHRAZIT', 'RAL 9016 WEISS', 'RAL 9005 SCHWARZ', 'DB 703']

# Fields shared by all roof systems
UEBERDACHUNG_FIELDS = [
    {'name': 'breite', 'label': 'Breite', 'type': 'number', 'unit': 'mm', 'required': True},
    {'name': 'tiefe', 'label': 'Tiefe', 'type': 'number', 'unit': 'mm', 'required': True},
    {'name': 'anzahlStützen', 'label': 'Anzahl Stützen', 'type': 'number', 'required': False},
    {'name': 'höheStützen', 'label': 'Höhe Stützen', 'type': 'number', 'unit': 'mm', 'required': False},
    {'name': 'gestellfarbe', 'label': 'Gestellfarbe', 'type': 'modelColorSelect', 'hasCustomOption': True, 'required': True},
    {'name': 'befestigungsart', 'label': 'Befestigungsart', 'type': 'radio', 'options': ['Wand', 'Decke', 'Freistehend', 'Untenbalkon'], 'required': True},
    {'name': 'wandbeschaffenheit', 'label': 'Wandbeschaffenheit', 'type': 'select', 'options': ['Putz', 'Klinker', 'Beton', 'Holz'], 'required': True,
     'showWhen': {'field': 'befestigungsart', 'value': 'Wand'}},
    {'name': 'überstand', 'label': 'Überstand', 'type': 'conditional', 'valueLabel': 'Überstand', 'valueUnit': 'mm', 'required': True},
    {'name': 'statikträger', 'label': 'Statikträger', 'type': 'select', 'options': ['Keine', 'Für Überstand', 'Für Decke', 'Wand Extra'], 'required': False},
    {'name': 'ledBeleuchtung', 'label': 'LED Beleuchtung', 'type': 'select', 'options': ['Keine', '6 Stück', '9 Stück', '12 Stück', 'Sonstige'], 'required': False,
     'conditionalField': {'trigger': 'Sonstige', 'field': 'ledAnzahl', 'type': 'number', 'unit': 'Stück', 'label': 'Anzahl LED'}},
    {'name': 'fundament', 'label': 'Fundament', 'type': 'fundament', 'options': ['Aylux', 'Kunde'], 'required': True},
    {'name': 'wasserablauf', 'label': 'Wasserablauf', 'type': 'radio', 'options': ['Links', 'Rechts', 'Beidseitig'], 'required': False},
    {'name': 'bauform', 'label': 'Bauform', 'type': 'bauform', 'required': True},
    {'name': 'dachrinne', 'label': 'Dachrinne vorhanden', 'type': 'ja_nein', 'required': True},
    {'name': 'extras', 'label': 'Extras', 'type': 'multiselect', 'options': ['Keine', 'Heizstrahler', 'Lautsprecher', 'Dimmer', 'Regensensor'], 'required': True},
    {'name': 'markise', 'label': 'Markise dazu', 'type': 'markise_trigger', 'required': False},
    MONTAGETEAM_FIELD,
]

GLASDACH_FIELDS = UEBERDACHUNG_FIELDS[:5] + [
    {'name': 'eindeckung', 'label': 'Eindeckung', 'type': 'select', 'options': EINDECKUNG_OPTIONS, 'required': True},
    {'name': 'anzahlFelder', 'label': 'Anzahl Felder', 'type': 'number', 'required': False},
] + UEBERDACHUNG_FIELDS[5:]

LAMELLENDACH_FIELDS = UEBERDACHUNG_FIELDS[:5] + [
    {'name': 'antrieb', 'label': 'Antrieb', 'type': 'select', 'options': ['Motor', 'Kurbel'], 'required': True},
    {'name': 'antriebsseite', 'label': 'Antriebsseite', 'type': 'radio', 'options': ['Links', 'Rechts'], 'required': False,
     'showWhen': {'field': 'antrieb', 'notEquals': 'Kurbel'}},
    {'name': 'seitenmarkise', 'label': 'Seitenmarkise', 'type': 'seitenmarkise', 'positions': ['Rechts', 'Links', 'Vorne', 'Hinten'], 'required': False},
] + UEBERDACHUNG_FIELDS[5:]

PERGOLA_FIELDS = UEBERDACHUNG_FIELDS[:5] + [
    {'name': 'markisenlänge', 'label': 'Markisenlänge', 'type': 'number', 'unit': 'mm', 'required': False},
    {'name': 'antrieb', 'label': 'Antrieb', 'type': 'select', 'options': ['Motor', 'Kurbel'], 'required': False},
    {'name': 'seitenmarkise', 'label': 'Seitenmarkise', 'type': 'seitenmarkise', 'positions': ['Rechts', 'Links', 'Vorne'], 'required': False},
] + UEBERDACHUNG_FIELDS[5:]

VORDACH_FIELDS = [
    {'name': 'breite', 'label': 'Breite', 'type': 'number', 'unit': 'mm', 'required': True},
    {'name': 'tiefe', 'label': 'Tiefe', 'type': 'number', 'unit': 'mm', 'required': True},
    {'name': 'gestellfarbe', 'label': 'Gestellfarbe', 'type': 'modelColorSelect', 'hasCustomOption': True, 'required': True},
    {'name': 'eindeckung', 'label': 'Eindeckung', 'type': 'select', 'options': EINDECKUNG_OPTIONS, 'required': False},
    {'name': 'wandbeschaffenheit', 'label': 'Wandbeschaffenheit', 'type': 'select', 'options': ['Putz', 'Klinker', 'Beton', 'Holz'], 'required': True},
    {'name': 'dachrinne', 'label': 'Dachrinne vorhanden', 'type': 'ja_nein', 'required': False},
    MONTAGETEAM_FIELD,
]

# Fields shared by all awning types
MARKISE_FIELDS = [
    {'name': 'breite', 'label': 'Breite', 'type': 'number', 'unit': 'mm', 'required': True},
    {'name': 'tiefe', 'label': 'Tiefe', 'type': 'number', 'unit': 'mm', 'required': True},
    {'name': 'gestellfarbe', 'label': 'Gestellfarbe', 'type': 'text', 'required': False},
    {'name': 'stoffNummer', 'label': 'Stoff Nummer', 'type': 'text', 'required': True},
    {'name': 'antrieb', 'label': 'Antrieb', 'type': 'select', 'options': ['Motor', 'Motor mit Funk', 'Kurbel'], 'required': True},
    {'name': 'antriebsseite', 'label': 'Antriebsseite', 'type': 'radio', 'options': ['Links', 'Rechts'], 'required': True},
    {'name': 'volanTyp', 'label': 'Volan Typ', 'type': 'text', 'required': False},
    {'name': 'zip', 'label': 'ZIP', 'type': 'radio', 'options': ['JA', 'NEIN'], 'required': False},
    {'name': 'bemerkungen', 'label': 'Bemerkungen', 'type': 'textarea', 'required': False},
    MONTAGETEAM_FIELD,
]

SENKRECHT_FIELDS = [
    {'name': 'breite', 'label': 'Breite', 'type': 'number', 'unit': 'mm', 'required': True},
    {'name': 'höhe', 'label': 'Höhe', 'type': 'number', 'unit': 'mm', 'required': True},
    {'name': 'befestigungsart', 'label': 'Befestigungsart', 'type': 'radio', 'options': ['Zwischen Pfosten', 'Vor Pfosten'], 'required': True},
] + MARKISE_FIELDS[2:]

KASSETTE_FIELDS = MARKISE_FIELDS[:2] + [
    {'name': 'befestigungsart', 'label': 'Befestigungsart', 'type': 'radio', 'options': ['Wand', 'Decke', 'Untenbalkon'], 'required': True},
] + MARKISE_FIELDS[2:]

# Fields shared by all sub-structure elements
ELEMENT_FIELDS = [
    {'name': 'breite', 'label': 'Breite', 'type': 'number', 'unit': 'mm', 'required': True},
    {'name': 'höhe', 'label': 'Höhe', 'type': 'number', 'unit': 'mm', 'required': True},
    {'name': 'anzahlFlügel', 'label': 'Anzahl Flügel', 'type': 'number', 'required': False},
    {'name': 'gestellfarbe', 'label': 'Gestellfarbe', 'type': 'modelColorSelect', 'hasCustomOption': True, 'required': False},
    {'name': 'position', 'label': 'Position', 'type': 'radio', 'options': ['LINKS', 'RECHTS', 'FRONT', 'FRONT LINKS', 'FRONT RECHTS'], 'required': True},
    {'name': 'fundament', 'label': 'Fundament', 'type': 'fundament', 'options': ['STREIFEN', 'AUSGLEICH'], 'required': False},
    MONTAGETEAM_FIELD,
]

SCHIEBE_FIELDS = ELEMENT_FIELDS[:5] + [
    {'name': 'öffnungsrichtung', 'label': 'Öffnungsrichtung', 'type': 'radio',
     'options': ['NACH WAND', 'NACH PFOSTEN', 'NACH LINKS', 'NACH RECHTS', 'MITTIG ÖFFNEN'], 'required': True},
    {'name': 'bodenschiene', 'label': 'Bodenschiene versenkt', 'type': 'ja_nein', 'required': False},
] + ELEMENT_FIELDS[5:]

KEIL_FIELDS = [
    {'name': 'breite', 'label': 'Breite', 'type': 'number', 'unit': 'mm', 'required': True},
    {'name': 'höheVorne', 'label': 'Höhe vorne', 'type': 'number', 'unit': 'mm', 'required': True},
    {'name': 'höheHinten', 'label': 'Höhe hinten', 'type': 'number', 'unit': 'mm', 'required': True},
    {'name': 'position', 'label': 'Position', 'type': 'radio', 'options': ['LINKS', 'RECHTS'], 'required': True},
    {'name': 'gestellfarbe', 'label': 'Gestellfarbe', 'type': 'modelColorSelect', 'hasCustomOption': True, 'required': False},
    MONTAGETEAM_FIELD,
]

DREHTUER_FIELDS = ELEMENT_FIELDS[:5] + [
    {'name': 'öffnungsrichtung', 'label': 'Öffnungsrichtung', 'type': 'radio', 'options': ['INNEN', 'AUSSEN'], 'required': True},
    {'name': 'anschlag', 'label': 'Anschlag', 'type': 'radio', 'options': ['DIN LINKS', 'DIN RECHTS'], 'required': True},
] + ELEMENT_FIELDS[5:]

ELEMENT_COLORS = {
    'ALUXE': STANDARD_COLORS,
    'APT': ['RAL 7016 ANTHRAZIT', 'RAL 9016 WEISS'],
    'BELLAVISTA': ['RAL 7016 ANTHRAZIT', 'RAL 9016 WEISS', 'RAL 9005 SCHWARZ'],
    'AL22': STANDARD_COLORS,
    'AL23': STANDARD_COLORS,
    'AL24': STANDARD_COLORS,
}

PRODUCT_CONFIG = {
    'ÜBERDACHUNG': {
        'Glasdach': {
            'models': ['Premiumline', 'Orangeline', 'Trendline', 'Topline', 'Designline', 'Ultraline', 'Skyline', 'Murano Puro', 'Murano Int. Zip'],
            'modelColors': {
                'Premiumline': STANDARD_COLORS,
                'Orangeline': ['RAL 7016 ANTHRAZIT', 'RAL 9016 WEISS'],
                'Trendline': ['RAL 7016 ANTHRAZIT', 'RAL 9016 WEISS'],
                'Topline': STANDARD_COLORS,
                'Designline': STANDARD_COLORS,
                'Ultraline': STANDARD_COLORS,
                'Skyline': ['RAL 7016 ANTHRAZIT', 'RAL 9005 SCHWARZ'],
                'Murano Puro': ['RAL 7016 ANTHRAZIT', 'RAL 9016 WEISS'],
                'Murano Int. Zip': ['RAL 7016 ANTHRAZIT', 'RAL 9016 WEISS'],
            },
            'fields': GLASDACH_FIELDS,
        },
        'Lamellendach': {
            'models': ['X Roof', 'Tarasola Essential', 'Tarasola Technik', 'Tarasola Puro', 'Brustor'],
            'modelColors': {
                'X Roof': STANDARD_COLORS,
                'Tarasola Essential': ['RAL 7016 ANTHRAZIT', 'RAL 9016 WEISS'],
                'Tarasola Technik': ['RAL 7016 ANTHRAZIT', 'RAL 9016 WEISS'],
                'Tarasola Puro': ['RAL 7016 ANTHRAZIT'],
                'Brustor': STANDARD_COLORS,
            },
            'fields': LAMELLENDACH_FIELDS,
        },
        'Pergola': {
            'models': ['Flat 125', 'Flat 135', 'Pergola Markise'],
            'modelColors': {
                'Flat 125': STANDARD_COLORS,
                'Flat 135': STANDARD_COLORS,
                'Pergola Markise': ['RAL 7016 ANTHRAZIT', 'RAL 9016 WEISS'],
            },
            'fields': PERGOLA_FIELDS,
        },
        'Vordach': {
            'models': ['Premiumline Vordach', 'Panther', 'Tarasola Vordach'],
            'modelColors': {
                'Premiumline Vordach': STANDARD_COLORS,
                'Panther': ['RAL 7016 ANTHRAZIT', 'RAL 9005 SCHWARZ'],
                'Tarasola Vordach': ['RAL 7016 ANTHRAZIT'],
            },
            'fields': VORDACH_FIELDS,
        },
    },
    'MARKISE': {
        'AUFGLAS': {'models': ['W350', 'ANCONA AG'], 'fields': MARKISE_FIELDS},
        'UNTERGLAS': {'models': ['T350', 'ANCONA UG'], 'fields': MARKISE_FIELDS},
        'SENKRECHT': {'models': ['2020Z', '1616Z'], 'fields': SENKRECHT_FIELDS},
        'VOLKASSETTE': {'models': ['TRENTINO'], 'fields': KASSETTE_FIELDS},
        'HALBEKASSETTE': {'models': ['AGUERO'], 'fields': KASSETTE_FIELDS},
    },
    'UNTERBAUELEMENTE': {
        'GG Schiebe Element': {
            'models': ['AL22', 'AL23', 'AL24', 'BELLAVISTA', 'APT'],
            'modelColors': ELEMENT_COLORS,
            'fields': SCHIEBE_FIELDS,
        },
        'Rahmen Schiebe Element': {
            'models': ['ALUXE', 'APT', 'BELLAVISTA'],
            'modelColors': ELEMENT_COLORS,
            'fields': SCHIEBE_FIELDS,
        },
        'Festes Element': {
            'models': ['ALUXE', 'APT', 'BELLAVISTA'],
            'modelColors': ELEMENT_COLORS,
            'fields': ELEMENT_FIELDS,
        },
        'Keil': {
            'models': ['ALUXE', 'APT', 'BELLAVISTA'],
            'modelColors': ELEMENT_COLORS,
            'fields': KEIL_FIELDS,
        },
        'Dreh Tür': {
            'models': ['ALUXE', 'APT', 'BELLAVISTA'],
            'modelColors': ELEMENT_COLORS,
            'fields': DREHTUER_FIELDS,
        },
    },
}

# Awning sub-form attached to a roof when its markise_trigger is set
MARKISE_TYPES = {
    'AUFGLAS': ['W350', 'ANCONA AG'],
    'UNTERGLAS': ['T350', 'ANCONA UG'],
    'SENKRECHT': ['2020Z', '1616Z'],
    'VOLKASSETTE': ['TRENTINO'],
    'HALBEKASSETTE': ['AGUERO'],
}

# Types measured by height instead of length
MARKISE_HEIGHT_TYPES = ['SENKRECHT']

MARKISE_DATA_LABELS = {
    'typ': 'Typ',
    'modell': 'Modell',
    'breite': 'Breite (mm)',
    'laenge': 'Länge (mm)',
    'hoehe': 'Höhe (mm)',
    'stoffNummer': 'Stoff Nummer',
    'gestellfarbe': 'Gestellfarbe',
    'antrieb': 'Antrieb',
    'antriebsseite': 'Antriebsseite',
    'volanTyp': 'Volan Typ',
    'zip': 'ZIP',
    'befestigungsart': 'Befestigungsart',
    'position': 'Position',
}
