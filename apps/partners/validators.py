import re

from django.core.exceptions import ValidationError

# 1234567A, optionally followed by the code TVA / catégorie / établissement
# suffix as printed on the fiscal card: 1234567A/A/M/000
TUNISIAN_TAX_ID_RE = re.compile(r'^\d{7}[A-Za-z](?:/?[A-Za-z]/?[A-Za-z]/?\d{3})?$')


def validate_tunisian_tax_id(value):
    if value and not TUNISIAN_TAX_ID_RE.match(value.strip()):
        raise ValidationError(
            "Matricule fiscal invalide (7 chiffres + 1 lettre, ex. 1234567A ou 1234567A/A/M/000)",
            code='invalid_tax_id',
        )
